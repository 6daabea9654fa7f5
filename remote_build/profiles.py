"""Build profiles. Reads config/profiles YAML files into validated pydantic models."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ProfileError, ProfileNotFoundError

DEFAULT_PROFILE = "hopper"

_CONTEXT_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.+-]*$")
_IMAGE_NAME_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


def split_image_reference(text: str) -> Dict[str, str]:
    """
    Split "registry[:port]/namespace/name[:tag]" into its fields.

    The registry port colon is never read as a tag separator; a missing tag
    means "latest". Namespaces may span several path segments.
    """
    parts = text.strip().split("/")
    if len(parts) < 3 or not all(parts):
        raise ValueError(f"image reference must be registry/namespace/name[:tag], got {text!r}")
    name = parts[-1]
    tag = "latest"
    if ":" in name:
        name, tag = name.rsplit(":", 1)
    return {"registry": parts[0], "namespace": "/".join(parts[1:-1]), "name": name, "tag": tag}


class TLSMaterial(BaseModel):
    """Mutual TLS files handed to the docker endpoint."""

    ca: Path
    cert: Path
    key: Path

    @field_validator("ca", "cert", "key", mode="after")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    def files(self) -> List[Path]:
        return [self.ca, self.cert, self.key]

    def missing_files(self) -> List[Path]:
        """Return the paths that do not exist or cannot be read by this process."""
        return [p for p in self.files() if not p.is_file() or not os.access(p, os.R_OK)]


class RemoteContext(BaseModel):
    name: str = "remote"
    host: str
    tls: TLSMaterial
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _CONTEXT_NAME_RE.match(value):
            raise ValueError(f"invalid docker context name: {value!r}")
        return value

    @field_validator("host")
    @classmethod
    def _check_host(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme != "tcp":
            raise ValueError(f"host must use tcp:// scheme, got {value!r}")
        try:
            port = parts.port
        except ValueError:
            port = None
        if not parts.hostname or port is None:
            raise ValueError(f"host must include a hostname and port, got {value!r}")
        return value

    def docker_endpoint(self) -> str:
        """Value for `docker context create --docker`."""
        return f"host={self.host},ca={self.tls.ca},cert={self.tls.cert},key={self.tls.key}"


class ImageReference(BaseModel):
    """Fully qualified image tag: registry/namespace/name:tag."""

    registry: str
    namespace: str
    name: str
    tag: str = "latest"

    @field_validator("registry")
    @classmethod
    def _check_registry(cls, value: str) -> str:
        if not value or "/" in value or "://" in value:
            raise ValueError(f"registry must be a bare host[:port], got {value!r}")
        return value

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        segments = value.split("/")
        if not all(_IMAGE_NAME_RE.match(s) for s in segments):
            raise ValueError(f"invalid repository namespace: {value!r}")
        return value

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _IMAGE_NAME_RE.match(value):
            raise ValueError(f"invalid image name: {value!r}")
        return value

    @field_validator("tag")
    @classmethod
    def _check_tag(cls, value: str) -> str:
        if not _TAG_RE.match(value):
            raise ValueError(f"invalid image tag: {value!r}")
        return value

    @property
    def repository(self) -> str:
        return f"{self.registry}/{self.namespace}/{self.name}"

    @property
    def ref(self) -> str:
        return f"{self.repository}:{self.tag}"

    @classmethod
    def parse(cls, text: str) -> "ImageReference":
        """Parse "registry[:port]/namespace/name[:tag]" into a validated reference."""
        return cls(**split_image_reference(text))


class BuildSettings(BaseModel):
    path: Path = Path(".")
    dockerfile: Optional[Path] = None
    no_cache: bool = False
    pull: bool = False
    build_args: Dict[str, str] = Field(default_factory=dict)


class Timeouts(BaseModel):
    """Seconds before a docker command is abandoned. None lets build and push run to completion."""

    context: int = Field(default=30, gt=0)
    build: Optional[int] = Field(default=None, gt=0)
    push: Optional[int] = Field(default=None, gt=0)


class BuildProfile(BaseModel):
    name: str
    context: RemoteContext
    image: ImageReference
    build: BuildSettings = Field(default_factory=BuildSettings)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    replace_context: bool = False
    restore_context: bool = False

    @field_validator("image", mode="before")
    @classmethod
    def _image_from_string(cls, value: Any) -> Any:
        # Profiles may write the image as a single "registry/ns/name:tag" string
        if isinstance(value, str):
            return split_image_reference(value)
        return value


def get_profiles_dir() -> Path:
    """
    Get profiles directory path.

    Uses REMOTE_BUILD_CONFIG_DIR environment variable if set, otherwise defaults to
    repo_root/config/profiles relative to this file.
    """
    if os.environ.get("REMOTE_BUILD_CONFIG_DIR"):
        return Path(os.environ["REMOTE_BUILD_CONFIG_DIR"])

    # Path: remote_build/profiles.py -> repo root
    repo_root = Path(__file__).resolve().parent.parent
    return repo_root / "config" / "profiles"


def default_profile_name() -> str:
    return os.environ.get("REMOTE_BUILD_PROFILE") or DEFAULT_PROFILE


def _resolve_profile_path(name_or_path: str) -> Path:
    candidate = Path(name_or_path).expanduser()
    if candidate.suffix in (".yaml", ".yml") or len(candidate.parts) > 1:
        if not candidate.is_file():
            raise ProfileNotFoundError(name_or_path)
        return candidate

    profiles_dir = get_profiles_dir()
    for suffix in (".yaml", ".yml"):
        path = profiles_dir / f"{name_or_path}{suffix}"
        if path.is_file():
            return path
    raise ProfileNotFoundError(name_or_path, profiles_dir)


def load_profile(name_or_path: Optional[str] = None) -> BuildProfile:
    """
    Load a build profile by name or path.

    Args:
        name_or_path: Profile name (looked up as <profiles_dir>/<name>.yaml) or a
            path to a YAML file. Defaults to REMOTE_BUILD_PROFILE or "hopper".

    Returns:
        Validated BuildProfile
    """
    path = _resolve_profile_path(name_or_path or default_profile_name())

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Build profile {path} must be a mapping, got {type(data).__name__}")

    data.setdefault("name", path.stem)

    try:
        return BuildProfile.model_validate(data)
    except ValidationError as e:
        raise ProfileError(f"Invalid build profile {path}:\n{e}") from e


def list_profiles() -> List[Dict[str, Any]]:
    """
    List all profiles in the profiles directory.

    Profiles that fail to load are listed with an "error" instead of an "image".
    """
    profiles_dir = get_profiles_dir()

    if not profiles_dir.exists():
        return []

    profiles = []
    for path in sorted(list(profiles_dir.glob("*.yaml")) + list(profiles_dir.glob("*.yml"))):
        entry: Dict[str, Any] = {"name": path.stem, "path": str(path)}
        try:
            entry["image"] = load_profile(str(path)).image.ref
        except ProfileError as e:
            entry["error"] = str(e)
        profiles.append(entry)

    return profiles


def apply_overrides(
    profile: BuildProfile,
    tag: Optional[str] = None,
    image: Optional[str] = None,
    no_cache: Optional[bool] = None,
    path: Optional[Path] = None,
    build_args: Optional[Dict[str, str]] = None,
    replace_context: Optional[bool] = None,
    restore_context: Optional[bool] = None,
) -> BuildProfile:
    """
    Return a copy of the profile with command-line overrides applied.

    `image` is a full reference string; `tag` is applied after it. Build args are
    merged over the profile's own.
    """
    try:
        image_ref = ImageReference.parse(image) if image else profile.image
        if tag:
            image_ref = ImageReference(**{**image_ref.model_dump(), "tag": tag})

        build_data = profile.build.model_dump()
        if no_cache is not None:
            build_data["no_cache"] = no_cache
        if path is not None:
            build_data["path"] = path
        if build_args:
            build_data["build_args"] = {**build_data["build_args"], **build_args}
    except ValidationError as e:
        raise ProfileError(f"Invalid override:\n{e}") from e
    except ValueError as e:
        raise ProfileError(f"Invalid override: {e}") from e

    update: Dict[str, Any] = {
        "image": image_ref,
        "build": BuildSettings.model_validate(build_data),
    }
    if replace_context is not None:
        update["replace_context"] = replace_context
    if restore_context is not None:
        update["restore_context"] = restore_context
    return profile.model_copy(update=update)
