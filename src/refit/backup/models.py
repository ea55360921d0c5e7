"""Data types for backups of the asset tree."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class Backup:
    """A completed backup as recorded in its metadata file."""

    id: str
    source_version: str
    created_at: datetime
    file_count: int
    excluded_patterns: tuple[str, ...]
    path: Path


@dataclass(frozen=True)
class BackupValidation:
    """Outcome of validating a backup directory.

    expected_file_count is None when the metadata could not be read.
    """

    valid: bool
    errors: tuple[str, ...]
    expected_file_count: int | None
    actual_file_count: int
    tolerance: int


@dataclass(frozen=True)
class RestoreResult:
    backup_path: Path
    temp_backup_path: Path | None
    regenerable_preserved: tuple[str, ...]


@dataclass(frozen=True)
class BackupListing:
    """A backup directory found on disk.

    backup is None when the metadata is missing or unreadable.
    """

    backup: Backup | None
    path: Path
    valid: bool
    errors: tuple[str, ...]
