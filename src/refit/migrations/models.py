"""Data types for kit migrations."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from refit.core.errors import MigrationFailedError


@dataclass(frozen=True)
class MigrationDescriptor:
    """One entry of a kit's migrations.toml.

    implementation_ref names a built-in migration function; it is never
    evaluated as code.
    """

    version: str
    description: str
    implementation_ref: str


@dataclass(frozen=True)
class MigrationContext:
    install_dir: Path
    from_version: str
    to_version: str


@dataclass(frozen=True)
class MigrationRunResult:
    """Outcome of a sequential migration run.

    applied lists the migrations that completed, in order. On failure,
    failed is the migration that raised and error wraps its exception.
    """

    applied: tuple[MigrationDescriptor, ...]
    failed: MigrationDescriptor | None
    error: MigrationFailedError | None

    @property
    def succeeded(self) -> bool:
        return self.error is None


MigrationFn = Callable[[MigrationContext], None]
