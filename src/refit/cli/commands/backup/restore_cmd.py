"""Backup restore command - replace the installed kit with a backup."""

import click

from refit.backup.manager import BackupManager
from refit.cli.constants import EXIT_BACKUP_INVALID, EXIT_FAILURE, EXIT_ROLLBACK_FAILED
from refit.cli.output import error_output, user_output
from refit.core.context import RefitContext
from refit.core.errors import (
    BackupValidationError,
    LockHeldError,
    RestoreError,
    RollbackFailedError,
)
from refit.upgrade.lock import UpgradeLock


@click.command("restore")
@click.argument("backup_id")
@click.option(
    "--no-preserve-regenerable",
    "discard_regenerable",
    is_flag=True,
    help="Drop regenerable directories (e.g. node_modules) instead of keeping them",
)
@click.option("-f", "--force", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def restore_backup_cmd(
    ctx: RefitContext, backup_id: str, discard_regenerable: bool, force: bool
) -> None:
    """Restore the installed kit from a backup."""
    manager = BackupManager(ctx)
    path = manager.find_backup(backup_id)
    if path is None:
        error_output(f"Backup not found: {backup_id}")
        raise SystemExit(EXIT_FAILURE)

    if not force and not ctx.prompter.confirm(
        f"Replace {ctx.install_dir} with {path.name}?", default=False
    ):
        user_output("Restore cancelled")
        return

    try:
        with UpgradeLock(ctx.lock_path, ctx.time):
            result = manager.restore_backup(
                path, ctx.install_dir, preserve_regenerable=not discard_regenerable
            )
    except LockHeldError as e:
        error_output(str(e))
        raise SystemExit(EXIT_FAILURE) from e
    except BackupValidationError as e:
        error_output(str(e))
        raise SystemExit(EXIT_BACKUP_INVALID) from e
    except RestoreError as e:
        error_output(str(e))
        raise SystemExit(EXIT_FAILURE) from e
    except RollbackFailedError as e:
        error_output(str(e))
        raise SystemExit(EXIT_ROLLBACK_FAILED) from e

    user_output(click.style("✓", fg="green") + f" Restored {ctx.install_dir} from {path.name}")
    if result.regenerable_preserved:
        user_output(f"  Kept: {', '.join(result.regenerable_preserved)}")
