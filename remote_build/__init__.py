"""Build a container image on a remote TLS docker daemon and push it to a registry."""

__version__ = "0.1.0"

from .contexts import create_context, current_context, use_context
from .images import build_image, push_image
from .pipeline import build_and_push, plan, run_checks
from .profiles import BuildProfile, ImageReference, RemoteContext, load_profile

__all__ = [
    "BuildProfile",
    "ImageReference",
    "RemoteContext",
    "build_and_push",
    "build_image",
    "create_context",
    "current_context",
    "load_profile",
    "plan",
    "push_image",
    "run_checks",
    "use_context",
]
