"""Remote docker contexts: create (mutual TLS endpoint), select, inspect, remove."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .docker_cli import run_docker
from .errors import ContextConflictError, ContextError, DockerCommandError, TLSMaterialError
from .profiles import RemoteContext, TLSMaterial

logger = structlog.get_logger(__name__)

_NOT_FOUND_MARKERS = ("does not exist", "not found")

# profile field -> file name docker keeps in the context's TLS store
_TLS_FILES = {"ca": "ca.pem", "cert": "cert.pem", "key": "key.pem"}


def context_create_args(ctx: RemoteContext) -> List[str]:
    args = ["context", "create", ctx.name]
    if ctx.description:
        args.extend(["--description", ctx.description])
    args.extend(["--docker", ctx.docker_endpoint()])
    return args


def context_use_args(name: str) -> List[str]:
    return ["context", "use", name]


def inspect_context(name: str, timeout: float = 30) -> Optional[Dict[str, Any]]:
    """
    Return `docker context inspect <name>` as a dict, or None if the context does not exist.
    """
    result = run_docker(["context", "inspect", name], timeout=timeout, check=False)
    if result.returncode != 0:
        stderr = (result.stderr or "").lower()
        if any(marker in stderr for marker in _NOT_FOUND_MARKERS):
            return None
        raise DockerCommandError(f"docker context inspect {name}", result.returncode, result.stdout, result.stderr)

    try:
        data = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as e:
        raise ContextError(f"Unreadable output from docker context inspect {name}: {e}") from e
    if isinstance(data, list):
        return data[0] if data else None
    return data


def context_host(inspected: Dict[str, Any]) -> str:
    """Docker endpoint host of an inspected context ("" if none)."""
    endpoints = inspected.get("Endpoints") or {}
    return (endpoints.get("docker") or {}).get("Host", "")


def context_tls_mismatch(inspected: Dict[str, Any], tls: TLSMaterial) -> Optional[str]:
    """
    Compare the TLS material docker stored for a context with the profile's files.

    docker copies ca.pem, cert.pem and key.pem into its context store when the
    context is created, so a context made without TLS, or before the certificates
    were rotated, keeps using what it stored.

    Returns:
        None if the stored files match, otherwise what differs
    """
    stored = set((inspected.get("TLSMaterial") or {}).get("docker") or [])
    absent = [filename for filename in _TLS_FILES.values() if filename not in stored]
    if absent:
        return "no " + ", ".join(absent) + " in the context"

    tls_path = (inspected.get("Storage") or {}).get("TLSPath")
    if not tls_path:
        return "docker did not report where the context keeps its TLS material"

    store = Path(tls_path) / "docker"
    changed = []
    for field, filename in _TLS_FILES.items():
        try:
            same = (store / filename).read_bytes() == getattr(tls, field).read_bytes()
        except OSError:
            same = False
        if not same:
            changed.append(filename)
    if changed:
        return "stored files differ from the profile's: " + ", ".join(changed)
    return None


def current_context(timeout: float = 30) -> str:
    """Name of the active docker context."""
    return run_docker(["context", "show"], timeout=timeout).stdout.strip()


def remove_context(name: str, timeout: float = 30) -> None:
    run_docker(["context", "rm", "-f", name], timeout=timeout)


def create_context(ctx: RemoteContext, replace: bool = False, timeout: float = 30) -> str:
    """
    Register the remote context.

    The CA certificate, client certificate and client key must all be readable.
    An existing context with the same name is reused only when it points at the
    same host and holds the same three TLS files; otherwise it is a conflict
    unless replace is set.

    Returns:
        "created", "exists" or "replaced"
    """
    missing = ctx.tls.missing_files()
    if missing:
        raise TLSMaterialError(ctx.name, missing)

    existing = inspect_context(ctx.name, timeout=timeout)
    outcome = "created"
    if existing is not None:
        existing_host = context_host(existing)
        tls_problem = context_tls_mismatch(existing, ctx.tls) if existing_host == ctx.host else None
        if existing_host == ctx.host and tls_problem is None and not replace:
            logger.info("context_reused", context=ctx.name, host=ctx.host)
            return "exists"
        if not replace:
            raise ContextConflictError(ctx.name, existing_host, ctx.host, reason=tls_problem)
        remove_context(ctx.name, timeout=timeout)
        outcome = "replaced"

    run_docker(context_create_args(ctx), timeout=timeout)
    logger.info("context_created", context=ctx.name, host=ctx.host, outcome=outcome)
    return outcome


def use_context(name: str, timeout: float = 30) -> None:
    """Make `name` the active context and confirm docker reports it as such."""
    run_docker(context_use_args(name), timeout=timeout)
    active = current_context(timeout=timeout)
    if active != name:
        raise ContextError(f"Active context is {active!r} after selecting {name!r}")
