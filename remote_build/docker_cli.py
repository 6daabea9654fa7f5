"""Thin wrapper around the docker CLI. Every docker call in the package goes through run_docker."""

import os
import shlex
import shutil
import subprocess
from typing import Optional, Sequence, Tuple

import structlog

from .errors import DockerCommandError, DockerNotInstalledError, DockerTimeoutError

logger = structlog.get_logger(__name__)


def docker_binary() -> str:
    """docker executable, overridable with REMOTE_BUILD_DOCKER_BIN."""
    return os.environ.get("REMOTE_BUILD_DOCKER_BIN") or "docker"


def is_docker_installed() -> bool:
    """Return True if the docker CLI is on PATH."""
    return shutil.which(docker_binary()) is not None


def format_command(args: Sequence[str]) -> str:
    """Shell-quoted command line, as it would be typed."""
    return shlex.join([docker_binary(), *args])


def run_docker(
    args: Sequence[str], timeout: Optional[float] = 30, check: bool = True
) -> subprocess.CompletedProcess:
    """
    Run `docker <args>` and return the completed process.

    Args:
        args: Arguments after the docker binary
        timeout: Seconds before the command is abandoned, None to wait for it
        check: Raise DockerCommandError on non-zero exit

    Raises:
        DockerNotInstalledError: docker binary not on PATH
        DockerTimeoutError: command exceeded timeout
        DockerCommandError: non-zero exit (only when check=True)
    """
    cmd = [docker_binary(), *args]
    command = shlex.join(cmd)
    logger.info("docker_command", command=command, timeout=timeout)

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise DockerNotInstalledError(cmd[0]) from e
    except subprocess.TimeoutExpired as e:
        logger.error("docker_command_timeout", command=command, timeout=timeout)
        raise DockerTimeoutError(command, timeout) from e

    if result.returncode != 0:
        logger.warning("docker_command_failed", command=command, returncode=result.returncode)
        if check:
            raise DockerCommandError(command, result.returncode, result.stdout, result.stderr)
    else:
        logger.debug("docker_output", command=command, stdout=result.stdout, stderr=result.stderr)
    return result


def is_docker_available(context: Optional[str] = None, timeout: float = 10) -> Tuple[bool, str]:
    """
    Check if the Docker daemon is running and accessible.

    Args:
        context: Ask the daemon behind this docker context instead of the active one

    Returns:
        (available, message) - True if docker info succeeds, else False with error message
    """
    args = ["info", "--format", "{{.ServerVersion}}"]
    if context:
        args = ["--context", context, *args]
    try:
        result = run_docker(args, timeout=timeout, check=False)
    except DockerNotInstalledError:
        return False, "Docker is not installed or not in PATH"
    except DockerTimeoutError:
        return False, "Docker daemon did not respond (timeout)"

    if result.returncode == 0:
        version = result.stdout.strip()
        return True, f"Docker is available (server {version})" if version else "Docker is available"
    return False, result.stderr.strip() or "Docker daemon not running"
