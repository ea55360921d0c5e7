"""Create, validate, restore and prune backups of the asset tree.

Backups live under `.refit/backups/`:

    backups/
      backup-20260101-120000-000000/   # completed, metadata written last
      .partial-20260101-120500-000000/ # in progress (never listed)
      temp-backup-...                  # safety net during a restore

A backup directory is only ever visible under its final `backup-<id>` name
once every file and its metadata are on disk.
"""

import logging
import shutil
import tomllib
from datetime import datetime
from pathlib import Path

import tomli_w

from refit.backup.models import Backup, BackupListing, BackupValidation, RestoreResult
from refit.core.context import RefitContext
from refit.core.errors import (
    BackupError,
    BackupValidationError,
    ManifestMissingError,
    RestoreError,
    RollbackFailedError,
)
from refit.core.layout import CRITICAL_PATHS
from refit.core.tree import copy_tree, count_files, is_excluded, iter_tree_files
from refit.versioning.manifest import load_manifest

logger = logging.getLogger(__name__)

METADATA_FILENAME = "backup-metadata.toml"
BACKUP_PREFIX = "backup-"
PARTIAL_PREFIX = ".partial-"
TEMP_PREFIX = "temp-backup-"
REGENERABLE_PREFIX = ".regenerable-"

_REQUIRED_METADATA_KEYS = ("id", "source_version", "created_at", "file_count")


def make_backup_id(now: datetime) -> str:
    """Format a sortable backup id from a UTC timestamp."""
    return now.strftime("%Y%m%d-%H%M%S-%f")


def _read_metadata(backup_path: Path) -> tuple[Backup | None, str | None]:
    """Parse backup metadata, returning (backup, None) or (None, error)."""
    metadata_path = backup_path / METADATA_FILENAME
    if not metadata_path.exists():
        return None, f"Missing {METADATA_FILENAME}"

    try:
        data = tomllib.loads(metadata_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        return None, f"Unreadable {METADATA_FILENAME}: {e}"

    missing = [key for key in _REQUIRED_METADATA_KEYS if key not in data]
    if missing:
        return None, f"Metadata missing keys: {', '.join(missing)}"

    file_count = data["file_count"]
    if isinstance(file_count, bool) or not isinstance(file_count, int) or file_count < 0:
        return None, f"Metadata file_count is not a non-negative integer: {file_count!r}"

    created_raw = data["created_at"]
    if isinstance(created_raw, datetime):
        created_at = created_raw
    else:
        try:
            created_at = datetime.fromisoformat(str(created_raw))
        except ValueError:
            return None, f"Metadata created_at is not a timestamp: {created_raw!r}"

    excluded = data.get("excluded_patterns", [])
    if not isinstance(excluded, list):
        return None, "Metadata excluded_patterns must be a list"

    backup = Backup(
        id=str(data["id"]),
        source_version=str(data["source_version"]),
        created_at=created_at,
        file_count=file_count,
        excluded_patterns=tuple(str(item) for item in excluded),
        path=backup_path,
    )
    return backup, None


def _write_metadata(backup_path: Path, backup: Backup) -> None:
    data = {
        "id": backup.id,
        "source_version": backup.source_version,
        "created_at": backup.created_at.isoformat(),
        "file_count": backup.file_count,
        "excluded_patterns": list(backup.excluded_patterns),
    }
    with open(backup_path / METADATA_FILENAME, "wb") as f:
        tomli_w.dump(data, f)


class BackupManager:
    """Backups of the install dir, stored in the project's state dir."""

    def __init__(self, ctx: RefitContext) -> None:
        self._ctx = ctx

    @property
    def backups_dir(self) -> Path:
        return self._ctx.backups_dir

    def _count_backup_files(self, backup_path: Path) -> int:
        exclude = self._ctx.config.exclude
        return sum(
            1
            for relative in iter_tree_files(backup_path, exclude)
            if relative.as_posix() != METADATA_FILENAME
        )

    def _remove_stale_partials(self) -> None:
        for entry in self.backups_dir.iterdir():
            if entry.is_dir() and entry.name.startswith(PARTIAL_PREFIX):
                logger.debug("Removing interrupted backup %s", entry)
                shutil.rmtree(entry, ignore_errors=True)

    def create_backup(self, source_dir: Path) -> Backup:
        """Copy source_dir into a new backup directory.

        Regenerable subtrees (config `exclude`) are skipped. The metadata file
        is written last and the directory is renamed into place atomically, so
        a crash never leaves something that looks like a finished backup.

        Raises:
            BackupError: If the source is missing, contains the backups directory,
                or any copy step fails
        """
        if not source_dir.is_dir():
            raise BackupError(f"Cannot back up {source_dir}: directory does not exist")
        if self.backups_dir.resolve().is_relative_to(source_dir.resolve()):
            raise BackupError(
                f"Cannot back up {source_dir}: the backups directory {self.backups_dir} "
                "lies inside it"
            )

        self.backups_dir.mkdir(parents=True, exist_ok=True)
        self._remove_stale_partials()

        created_at = self._ctx.time.now()
        backup_id = make_backup_id(created_at)
        final_path = self.backups_dir / f"{BACKUP_PREFIX}{backup_id}"
        if final_path.exists():
            raise BackupError(f"Backup {backup_id} already exists at {final_path}")

        try:
            manifest = load_manifest(source_dir)
        except ManifestMissingError as e:
            logger.warning("Backing up tree with unreadable manifest: %s", e)
            manifest = None
        source_version = manifest.version if manifest is not None else "unknown"

        partial_path = self.backups_dir / f"{PARTIAL_PREFIX}{backup_id}"
        exclude = self._ctx.config.exclude
        try:
            file_count = copy_tree(source_dir, partial_path, exclude)
            backup = Backup(
                id=backup_id,
                source_version=source_version,
                created_at=created_at,
                file_count=file_count,
                excluded_patterns=exclude,
                path=final_path,
            )
            _write_metadata(partial_path, backup)
            partial_path.rename(final_path)
        except OSError as e:
            shutil.rmtree(partial_path, ignore_errors=True)
            raise BackupError(f"Failed to create backup of {source_dir}: {e}") from e

        logger.info("Created backup %s (%d files) at %s", backup_id, file_count, final_path)
        return backup

    def validate_backup(self, backup_path: Path) -> BackupValidation:
        """Check that a backup is complete enough to restore from.

        Checks, in order: the directory exists, metadata parses with all
        required keys, every critical path is present, and the file count is
        within the configured tolerance of the recorded count.
        """
        tolerance = self._ctx.config.backup_count_tolerance
        if not backup_path.is_dir():
            return BackupValidation(
                valid=False,
                errors=(f"Backup directory does not exist: {backup_path}",),
                expected_file_count=None,
                actual_file_count=0,
                tolerance=tolerance,
            )

        errors: list[str] = []
        backup, metadata_error = _read_metadata(backup_path)
        if metadata_error is not None:
            errors.append(metadata_error)

        for critical in CRITICAL_PATHS:
            if not (backup_path / critical).exists():
                errors.append(f"Missing critical path: {critical}")

        actual = self._count_backup_files(backup_path)
        expected = backup.file_count if backup is not None else None
        if expected is not None and abs(actual - expected) > tolerance:
            errors.append(
                f"File count mismatch: expected {expected}, found {actual} "
                f"(tolerance {tolerance})"
            )

        return BackupValidation(
            valid=not errors,
            errors=tuple(errors),
            expected_file_count=expected,
            actual_file_count=actual,
            tolerance=tolerance,
        )

    def _set_aside_regenerable(self, target_dir: Path, aside_dir: Path) -> tuple[str, ...]:
        moved: list[str] = []
        for entry in sorted(target_dir.iterdir()):
            if not is_excluded(Path(entry.name), self._ctx.config.exclude):
                continue
            aside_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(entry), str(aside_dir / entry.name))
            moved.append(entry.name)
        return tuple(moved)

    def _put_back_regenerable(
        self, aside_dir: Path, target_dir: Path, names: tuple[str, ...]
    ) -> None:
        for name in names:
            destination = target_dir / name
            if destination.exists():
                continue
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(aside_dir / name), str(destination))
        shutil.rmtree(aside_dir, ignore_errors=True)

    def restore_backup(
        self, backup_path: Path, target_dir: Path, *, preserve_regenerable: bool = True
    ) -> RestoreResult:
        """Replace target_dir with the contents of a backup.

        The current target is first copied to a temp backup. If copying the
        backup in fails, or the restored tree does not hold the number of
        files the backup recorded, the target is recovered from that temp
        backup.

        Args:
            backup_path: A `backup-<id>` directory
            target_dir: Directory to overwrite (usually the install dir)
            preserve_regenerable: Keep top-level regenerable subtrees (e.g.
                node_modules) of the current target instead of discarding them

        Raises:
            BackupValidationError: If the backup fails validation (target untouched)
            RestoreError: If the restore failed but the target was recovered, or
                the backup lives inside target_dir (target untouched)
            RollbackFailedError: If the target could not be recovered either
        """
        resolved_target = target_dir.resolve()
        for inner in (backup_path, self.backups_dir):
            if inner.resolve().is_relative_to(resolved_target):
                raise RestoreError(
                    f"Refusing to restore into {target_dir}: {inner} lies inside it and "
                    "would be deleted by the restore; nothing was changed"
                )

        validation = self.validate_backup(backup_path)
        if not validation.valid:
            raise BackupValidationError(backup_path, validation.errors)

        stamp = make_backup_id(self._ctx.time.now())
        temp_path: Path | None = None
        if target_dir.exists():
            temp_path = self.backups_dir / f"{TEMP_PREFIX}{stamp}"
            try:
                copy_tree(target_dir, temp_path, self._ctx.config.exclude)
            except OSError as e:
                shutil.rmtree(temp_path, ignore_errors=True)
                raise RestoreError(
                    f"Could not create temp backup of {target_dir}; nothing was changed: {e}"
                ) from e
            logger.debug("Temp backup of %s at %s", target_dir, temp_path)

        aside_dir = self.backups_dir / f"{REGENERABLE_PREFIX}{stamp}"
        preserved: tuple[str, ...] = ()
        if preserve_regenerable and target_dir.exists():
            preserved = self._set_aside_regenerable(target_dir, aside_dir)
        aside_note = (
            f" Regenerable directories ({', '.join(preserved)}) are set aside in {aside_dir}."
            if preserved
            else ""
        )

        try:
            if target_dir.exists():
                shutil.rmtree(target_dir)
            copy_tree(backup_path, target_dir, self._ctx.config.exclude)
            (target_dir / METADATA_FILENAME).unlink(missing_ok=True)
        except OSError as e:
            logger.error("Restore from %s failed: %s", backup_path, e)
            self._recover_from_temp(backup_path, target_dir, temp_path, e, aside_note)
            self._put_back_regenerable(aside_dir, target_dir, preserved)
            raise RestoreError(
                f"Restore from {backup_path} failed; {target_dir} was recovered "
                f"from {temp_path}: {e}"
            ) from e

        restored = count_files(target_dir, self._ctx.config.exclude)
        expected = validation.expected_file_count
        if expected is not None and abs(restored - expected) > validation.tolerance:
            message = (
                f"restored {restored} files but {backup_path} recorded {expected} "
                f"(tolerance {validation.tolerance})"
            )
            logger.error("Restore from %s incomplete: %s", backup_path, message)
            cause = RestoreError(message)
            self._recover_from_temp(backup_path, target_dir, temp_path, cause, aside_note)
            self._put_back_regenerable(aside_dir, target_dir, preserved)
            raise RestoreError(
                f"Restore from {backup_path} incomplete ({message}); {target_dir} was "
                f"recovered from {temp_path}"
            )

        self._put_back_regenerable(aside_dir, target_dir, preserved)
        if temp_path is not None:
            shutil.rmtree(temp_path, ignore_errors=True)

        logger.info("Restored %s from %s (%d files)", target_dir, backup_path, restored)
        return RestoreResult(
            backup_path=backup_path,
            temp_backup_path=temp_path,
            regenerable_preserved=preserved,
        )

    def _recover_from_temp(
        self,
        backup_path: Path,
        target_dir: Path,
        temp_path: Path | None,
        cause: Exception,
        aside_note: str,
    ) -> None:
        if temp_path is None:
            raise RollbackFailedError(
                f"Restore from {backup_path} failed and no temp backup exists: {cause}."
                f"{aside_note}",
                backup_path,
            ) from cause
        try:
            if target_dir.exists():
                shutil.rmtree(target_dir)
            copy_tree(temp_path, target_dir, self._ctx.config.exclude)
        except OSError as e:
            raise RollbackFailedError(
                f"Restore from {backup_path} failed and recovery from temp backup "
                f"{temp_path} also failed: {e}. Recover manually from either path."
                f"{aside_note}",
                backup_path,
            ) from e

    def list_backups(self) -> list[BackupListing]:
        """List all completed backups, newest first."""
        if not self.backups_dir.is_dir():
            return []

        listings: list[BackupListing] = []
        for entry in sorted(self.backups_dir.iterdir(), key=lambda p: p.name, reverse=True):
            if not entry.is_dir() or not entry.name.startswith(BACKUP_PREFIX):
                continue
            backup, metadata_error = _read_metadata(entry)
            if metadata_error is not None:
                listings.append(
                    BackupListing(backup=None, path=entry, valid=False, errors=(metadata_error,))
                )
                continue
            validation = self.validate_backup(entry)
            listings.append(
                BackupListing(
                    backup=backup, path=entry, valid=validation.valid, errors=validation.errors
                )
            )
        return listings

    def find_backup(self, backup_id: str) -> Path | None:
        """Resolve a backup id (with or without the `backup-` prefix) to its directory."""
        name = backup_id if backup_id.startswith(BACKUP_PREFIX) else f"{BACKUP_PREFIX}{backup_id}"
        path = self.backups_dir / name
        if path.is_dir():
            return path
        return None

    def prune_backups(self, keep: int) -> list[str]:
        """Delete all but the newest `keep` backups.

        Returns:
            Ids of the removed backups, newest first
        """
        if keep < 0:
            raise ValueError(f"keep must be non-negative, got {keep}")

        removed: list[str] = []
        for listing in self.list_backups()[keep:]:
            shutil.rmtree(listing.path)
            removed.append(listing.path.name.removeprefix(BACKUP_PREFIX))
            logger.info("Pruned backup %s", listing.path.name)
        return removed
