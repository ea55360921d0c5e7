"""Backup prune command."""

import click

from refit.backup.manager import BackupManager
from refit.cli.output import user_output
from refit.core.context import RefitContext


@click.command("prune")
@click.option(
    "--keep",
    type=click.IntRange(min=0),
    required=True,
    help="Number of newest backups to keep",
)
@click.pass_obj
def prune_backups_cmd(ctx: RefitContext, keep: int) -> None:
    """Delete all but the newest N backups."""
    removed = BackupManager(ctx).prune_backups(keep)
    if not removed:
        user_output("Nothing to prune")
        return
    for backup_id in removed:
        user_output(f"Removed backup {backup_id}")
    user_output(click.style("✓", fg="green") + f" Pruned {len(removed)} backup(s)")
