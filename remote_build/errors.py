"""Remote build exceptions – raised by profiles, contexts, images and docker_cli."""

from pathlib import Path
from typing import List, Optional, Sequence


class RemoteBuildError(Exception):
    """Base for all remote build errors."""
    pass


class ProfileError(RemoteBuildError):
    """Build profile is malformed or fails validation."""
    pass


class ProfileNotFoundError(ProfileError):
    """Build profile not found in the profiles directory."""

    def __init__(self, name: str, searched: Optional[Path] = None):
        self.name = name
        self.searched = searched
        message = f"Build profile not found: {name}"
        if searched:
            message += f" (looked in {searched})"
        super().__init__(message)


class TLSMaterialError(RemoteBuildError):
    """CA certificate, client certificate or client key is missing or unreadable."""

    def __init__(self, context_name: str, missing: Sequence[Path]):
        self.context_name = context_name
        self.missing: List[Path] = list(missing)
        paths = ", ".join(str(p) for p in self.missing)
        super().__init__(f"TLS material for context {context_name} not readable: {paths}")


class ContextError(RemoteBuildError):
    """Docker context could not be created or selected."""
    pass


class ContextConflictError(ContextError):
    """A context with the same name points at another daemon or holds other TLS material."""

    def __init__(self, name: str, existing_host: str, wanted_host: str, reason: Optional[str] = None):
        self.name = name
        self.existing_host = existing_host
        self.wanted_host = wanted_host
        self.reason = reason
        if reason:
            message = f"Context {name} ({existing_host}) does not match the profile: {reason}. "
        else:
            message = f"Context {name} already exists with host {existing_host} (wanted {wanted_host}). "
        super().__init__(message + "Use --replace-context to recreate it.")


class BuildContextError(RemoteBuildError):
    """Build context directory does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Build context is not a directory: {path}")


class DockerError(RemoteBuildError):
    """Base for failures of the docker CLI itself."""
    pass


class DockerNotInstalledError(DockerError):
    """docker executable is not on PATH."""

    def __init__(self, binary: str):
        self.binary = binary
        super().__init__(f"Docker CLI not found: {binary}. Install Docker or set REMOTE_BUILD_DOCKER_BIN.")


class DockerTimeoutError(DockerError):
    """docker command did not finish within its timeout."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s: {command}")


class DockerCommandError(DockerError):
    """docker command exited non-zero. stdout/stderr are kept verbatim."""

    def __init__(self, command: str, returncode: int, stdout: str = "", stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        detail = self.stderr.strip() or self.stdout.strip()
        message = f"{command} failed (exit {returncode})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
