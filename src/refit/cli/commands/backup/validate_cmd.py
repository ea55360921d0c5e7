"""Backup validate command."""

import click

from refit.backup.manager import BackupManager
from refit.cli.constants import EXIT_BACKUP_INVALID, EXIT_FAILURE
from refit.cli.output import error_output, user_output
from refit.core.context import RefitContext


@click.command("validate")
@click.argument("backup_id")
@click.pass_obj
def validate_backup_cmd(ctx: RefitContext, backup_id: str) -> None:
    """Check that a backup is complete enough to restore from."""
    manager = BackupManager(ctx)
    path = manager.find_backup(backup_id)
    if path is None:
        error_output(f"Backup not found: {backup_id}")
        raise SystemExit(EXIT_FAILURE)

    validation = manager.validate_backup(path)
    if validation.valid:
        user_output(
            click.style("✓", fg="green")
            + f" {path.name} is valid ({validation.actual_file_count} files)"
        )
        return

    error_output(f"{path.name} is invalid")
    for i, err in enumerate(validation.errors, start=1):
        user_output(f"  {i}. {err}")
    raise SystemExit(EXIT_BACKUP_INVALID)
