"""Exception taxonomy for refit operations.

Components raise these; the upgrade orchestrator converts them into
UpgradeError values so callers receive a result object instead of a traceback.
"""

from pathlib import Path


class RefitError(Exception):
    """Base class for all refit errors."""


class ConfigError(RefitError):
    """Raised when .refit/config.toml contains an invalid value."""


class ManifestMissingError(RefitError):
    """Raised when an install manifest is absent or cannot be parsed."""

    def __init__(self, manifest_path: Path, reason: str) -> None:
        super().__init__(f"Manifest unusable at {manifest_path}: {reason}")
        self.manifest_path = manifest_path
        self.reason = reason


class SourceUnavailableError(RefitError):
    """Raised when the remote registry cannot be reached or has no usable version."""


class SourceInvalidError(RefitError):
    """Raised when a candidate local source fails validation."""


class NoSourceAvailableError(RefitError):
    """Raised when neither the registry nor any local source is usable."""

    def __init__(self, attempts: list[str]) -> None:
        lines = "\n".join(f"  - {attempt}" for attempt in attempts)
        super().__init__(
            "No upgrade source available.\n"
            f"Attempted:\n{lines}\n\n"
            "To upgrade manually:\n"
            "  1. Copy a newer kit to ../kit-upgrade\n"
            "  2. Or set REFIT_UPGRADE_PATH=/path/to/kit\n"
            "  3. Or fix network access to the registry"
        )
        self.attempts = attempts


class BackupError(RefitError):
    """Raised when a backup cannot be created."""


class BackupValidationError(RefitError):
    """Raised when a backup fails validation."""

    def __init__(self, backup_path: Path, errors: tuple[str, ...]) -> None:
        numbered = "\n".join(f"  {i}. {err}" for i, err in enumerate(errors, start=1))
        super().__init__(f"Backup validation failed for {backup_path}:\n{numbered}")
        self.backup_path = backup_path
        self.errors = errors


class RestoreError(RefitError):
    """Raised when a restore failed but the target was recovered from the temp backup."""


class RollbackFailedError(RefitError):
    """Raised when restoring a backup failed and the target could not be recovered.

    The target directory may be partially written. Manual recovery from
    backup_path is required.
    """

    def __init__(self, message: str, backup_path: Path) -> None:
        super().__init__(message)
        self.backup_path = backup_path


class UnclassifiedFileError(RefitError):
    """Raised when files match no strategy rule or more than one."""

    def __init__(self, unclassified: tuple[str, ...], ambiguous: tuple[str, ...]) -> None:
        parts: list[str] = []
        if unclassified:
            parts.append("Files matching no strategy rule: " + ", ".join(unclassified))
        if ambiguous:
            parts.append("Files matching more than one rule: " + ", ".join(ambiguous))
        super().__init__("\n".join(parts))
        self.unclassified = unclassified
        self.ambiguous = ambiguous


class MergeConflictError(RefitError):
    """Raised when a three-way merge collides or fails schema validation."""

    def __init__(self, relative_path: str, diff: str) -> None:
        super().__init__(f"Merge conflict in {relative_path}:\n{diff}")
        self.relative_path = relative_path
        self.diff = diff


class MigrationRegistryError(RefitError):
    """Raised when the migration registry references unknown implementations."""


class MigrationFailedError(RefitError):
    """Raised when a migration raises during execution."""

    def __init__(self, version: str, description: str, cause: Exception) -> None:
        super().__init__(f"Migration failed: {description} ({version}): {cause}")
        self.version = version
        self.description = description
        self.cause = cause


class LockHeldError(RefitError):
    """Raised when another live process holds the upgrade lock."""


class IllegalTransitionError(RefitError):
    """Raised when the upgrade state machine is asked for a forbidden transition."""


class UpgradeValidationError(RefitError):
    """Raised when the upgraded tree fails post-upgrade validation."""
