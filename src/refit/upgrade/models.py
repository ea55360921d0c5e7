"""Inputs and outputs of an upgrade run."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from refit.migrations.models import MigrationDescriptor
from refit.upgrade.state import UpgradePhase
from refit.versioning.models import BumpKind, VersionSource

SourcePreference = Literal["auto", "registry", "local"]


@dataclass(frozen=True)
class UpgradeOptions:
    """How the caller wants the upgrade to run.

    local_path pins the local source; without it, configured candidates are
    searched.
    """

    target_version: str = "latest"
    dry_run: bool = False
    skip_confirmation: bool = False
    source_preference: SourcePreference = "auto"
    local_path: Path | None = None


@dataclass(frozen=True)
class UpgradePlan:
    """Everything the upgrade would do, computed without side effects."""

    files_to_overwrite: tuple[str, ...]
    files_to_preserve: tuple[str, ...]
    files_to_merge: tuple[str, ...]
    applicable_migrations: tuple[MigrationDescriptor, ...]
    from_version: str
    to_version: str
    dry_run: bool
    bump_kind: BumpKind
    source: VersionSource
    # Rendered conflicts of MERGE files; non-empty blocks a real run
    merge_conflicts: tuple[str, ...] = ()

    @property
    def up_to_date(self) -> bool:
        return self.bump_kind is BumpKind.NONE


@dataclass(frozen=True)
class UpgradeError:
    """Error result from an upgrade phase."""

    phase: str
    error_type: str
    message: str
    details: dict[str, str]


@dataclass(frozen=True)
class UpgradeResult:
    succeeded: bool
    applied_migrations: tuple[MigrationDescriptor, ...]
    backup_id: str | None
    rolled_back: bool
    error: UpgradeError | None
    final_phase: UpgradePhase
    plan: UpgradePlan | None
    backup_path: Path | None
    phases: tuple[UpgradePhase, ...] = ()
