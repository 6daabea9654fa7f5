"""Build and push the profile's image on the active docker context."""

from typing import List

import structlog

from .docker_cli import run_docker
from .errors import BuildContextError
from .profiles import BuildProfile

logger = structlog.get_logger(__name__)


def build_args(profile: BuildProfile) -> List[str]:
    settings = profile.build
    args = ["build", "-t", profile.image.ref]
    if settings.no_cache:
        args.append("--no-cache")
    if settings.pull:
        args.append("--pull")
    if settings.dockerfile:
        args.extend(["-f", str(settings.dockerfile)])
    for key, value in settings.build_args.items():
        args.extend(["--build-arg", f"{key}={value}"])
    args.append(str(settings.path))
    return args


def push_args(profile: BuildProfile) -> List[str]:
    return ["push", profile.image.ref]


def build_image(profile: BuildProfile) -> str:
    """
    Build the image from the profile's build context.

    Returns:
        The tag the image was built with
    """
    if not profile.build.path.is_dir():
        raise BuildContextError(profile.build.path)

    run_docker(build_args(profile), timeout=profile.timeouts.build)
    logger.info("image_built", image=profile.image.ref)
    return profile.image.ref


def push_image(profile: BuildProfile) -> str:
    """
    Push the tagged image to its registry.

    Returns:
        The pushed reference (identical to the build tag)
    """
    run_docker(push_args(profile), timeout=profile.timeouts.push)
    logger.info("image_pushed", image=profile.image.ref)
    return profile.image.ref
