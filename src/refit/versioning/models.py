"""Data models for version resolution."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class RegistrySource:
    """The remote registry serving package documents and release tarballs."""

    url: str

    def describe(self) -> str:
        return f"registry {self.url}"


@dataclass(frozen=True)
class LocalSource:
    """A local directory holding a complete kit (prior or alternate install)."""

    path: Path

    def describe(self) -> str:
        return f"local directory {self.path}"


VersionSource = RegistrySource | LocalSource


class BumpKind(Enum):
    """Size of the step between two versions."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    NONE = "none"


@dataclass(frozen=True)
class VersionInfo:
    """Current and target versions for one upgrade run."""

    current: str
    latest: str
    bump_kind: BumpKind


@dataclass(frozen=True)
class UpdateCheck:
    """Result of comparing the installed version against a source."""

    has_update: bool
    bump_kind: BumpKind
    current: str
    latest: str | None
    source: VersionSource
    # Set when the latest version could not be determined
    error: str | None


@dataclass(frozen=True)
class SourceAvailability:
    """Result of a cheap reachability check."""

    available: bool
    reason: str | None


@dataclass(frozen=True)
class KitManifest:
    """Identity and version recorded in an install's kit.toml."""

    name: str
    version: str
