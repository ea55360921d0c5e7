"""Exit codes of the refit CLI."""

from refit.upgrade.models import UpgradeResult
from refit.upgrade.state import UpgradePhase

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SOURCE_ERROR = 2  # no usable, reachable or valid upgrade source
EXIT_BACKUP_INVALID = 3
EXIT_ROLLBACK_FAILED = 4

SOURCE_ERROR_TYPES = frozenset({"no_source", "source_unavailable", "source_invalid"})


def exit_code_for(result: UpgradeResult) -> int:
    """Map an upgrade result to the process exit code."""
    if result.final_phase is UpgradePhase.FATAL:
        return EXIT_ROLLBACK_FAILED
    if result.error is None:
        return EXIT_OK
    if result.error.error_type in SOURCE_ERROR_TYPES:
        return EXIT_SOURCE_ERROR
    if result.error.error_type == "backup_invalid":
        return EXIT_BACKUP_INVALID
    return EXIT_FAILURE
