"""
Remote build pipeline: context create -> context use -> build -> push.

Steps run strictly in that order, synchronously, and the first failure stops
the run. Results are plain dicts:
{"success", "image_url", "steps": [{"step", "status", "message"}], "error"}.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

import structlog

from .contexts import (
    context_create_args,
    context_host,
    context_tls_mismatch,
    context_use_args,
    create_context,
    current_context,
    inspect_context,
    use_context,
)
from .docker_cli import docker_binary, format_command, is_docker_available, is_docker_installed, run_docker
from .errors import RemoteBuildError
from .images import build_args, build_image, push_args, push_image
from .profiles import BuildProfile

logger = structlog.get_logger(__name__)

STEP_ORDER = ("context-create", "context-use", "build", "push")


@dataclass
class Step:
    name: str
    args: List[str]

    @property
    def command(self) -> str:
        return format_command(self.args)


def plan(profile: BuildProfile) -> List[Step]:
    """The four docker invocations a run performs, in order."""
    return [
        Step("context-create", context_create_args(profile.context)),
        Step("context-use", context_use_args(profile.context.name)),
        Step("build", build_args(profile)),
        Step("push", push_args(profile)),
    ]


def _actions(profile: BuildProfile) -> List[Tuple[str, Callable[[], str]]]:
    ctx = profile.context
    timeout = profile.timeouts.context

    def create() -> str:
        outcome = create_context(ctx, replace=profile.replace_context, timeout=timeout)
        return f"Context {ctx.name} {outcome} ({ctx.host})"

    def select() -> str:
        use_context(ctx.name, timeout=timeout)
        return f"Active context: {ctx.name}"

    def build() -> str:
        return f"Built image: {build_image(profile)}"

    def push() -> str:
        return f"Pushed to: {push_image(profile)}"

    return [
        ("context-create", create),
        ("context-use", select),
        ("build", build),
        ("push", push),
    ]


def _restore_context(name: str, profile: BuildProfile, result: Dict[str, Any]) -> None:
    step = {"step": "context-restore", "status": "in_progress"}
    result["steps"].append(step)
    try:
        run_docker(context_use_args(name), timeout=profile.timeouts.context)
    except RemoteBuildError as e:
        logger.warning("context_restore_failed", context=name, error=str(e))
        step["status"] = "failed"
        step["message"] = str(e)
        return
    step["status"] = "completed"
    step["message"] = f"Restored context: {name}"


def build_and_push(profile: BuildProfile, dry_run: bool = False) -> Dict[str, Any]:
    """
    Complete workflow: register and select the remote context, build, push.

    Args:
        profile: Build profile
        dry_run: Record the planned commands as skipped steps without running docker

    Returns:
        Dict with success, image_url, steps and error
    """
    result: Dict[str, Any] = {
        "success": False,
        "image_url": "",
        "steps": [],
        "error": "",
    }

    structlog.contextvars.bind_contextvars(profile=profile.name, image=profile.image.ref)
    try:
        if dry_run:
            for step in plan(profile):
                result["steps"].append({"step": step.name, "status": "skipped", "message": step.command})
            result["success"] = True
            result["image_url"] = profile.image.ref
            return result

        # Only the CLI is needed locally; the daemon is the remote one
        if not is_docker_installed():
            result["error"] = f"Docker CLI not found: {docker_binary()}. Install Docker or set REMOTE_BUILD_DOCKER_BIN."
            return result

        previous = ""
        if profile.restore_context:
            try:
                previous = current_context(timeout=profile.timeouts.context)
            except RemoteBuildError as e:
                result["error"] = f"Could not read active context: {e}"
                return result

        try:
            for name, action in _actions(profile):
                result["steps"].append({"step": name, "status": "in_progress"})
                try:
                    message = action()
                except RemoteBuildError as e:
                    logger.error("step_failed", step=name, error=str(e))
                    result["steps"][-1]["status"] = "failed"
                    result["steps"][-1]["message"] = str(e)
                    result["error"] = str(e)
                    return result
                result["steps"][-1]["status"] = "completed"
                result["steps"][-1]["message"] = message

            result["success"] = True
            result["image_url"] = profile.image.ref
            return result
        finally:
            if previous and previous != profile.context.name:
                _restore_context(previous, profile, result)
    finally:
        structlog.contextvars.unbind_contextvars("profile", "image")


def run_checks(profile: BuildProfile) -> List[Tuple[str, bool, str]]:
    """
    Pre-flight report for a profile.

    Returns:
        List of (check, ok, details)
    """
    checks: List[Tuple[str, bool, str]] = []
    ctx = profile.context

    installed = is_docker_installed()
    checks.append(("Docker CLI", installed, docker_binary() if installed else f"{docker_binary()} not on PATH"))

    missing = ctx.tls.missing_files()
    if missing:
        checks.append(("TLS material", False, "missing or unreadable: " + ", ".join(str(p) for p in missing)))
    else:
        checks.append(("TLS material", True, ", ".join(str(p) for p in ctx.tls.files())))

    build_path = profile.build.path
    checks.append(("Build context", build_path.is_dir(), str(build_path)))

    dockerfile = profile.build.dockerfile or build_path / "Dockerfile"
    checks.append(("Dockerfile", dockerfile.is_file(), str(dockerfile)))

    if not installed:
        return checks

    try:
        existing = inspect_context(ctx.name, timeout=profile.timeouts.context)
    except RemoteBuildError as e:
        checks.append(("Remote context", False, str(e)))
        return checks

    if existing is None:
        checks.append(("Remote context", True, f"{ctx.name} will be created ({ctx.host})"))
        return checks

    existing_host = context_host(existing)
    if existing_host != ctx.host:
        checks.append(("Remote context", profile.replace_context, f"{ctx.name} points at {existing_host}"))
        return checks

    tls_problem = context_tls_mismatch(existing, ctx.tls)
    if tls_problem:
        checks.append(("Remote context", profile.replace_context, f"{ctx.name}: {tls_problem}"))
        return checks

    checks.append(("Remote context", True, f"{ctx.name} -> {ctx.host}"))
    ok, message = is_docker_available(context=ctx.name)
    checks.append(("Remote daemon", ok, message))
    return checks
