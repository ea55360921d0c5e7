"""Backup list command - display backups with their validation state."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from refit.backup.manager import BackupManager
from refit.cli.output import user_output
from refit.core.context import RefitContext


@click.command("list")
@click.pass_obj
def list_backups_cmd(ctx: RefitContext) -> None:
    """List backups, newest first."""
    listings = BackupManager(ctx).list_backups()
    if not listings:
        user_output("No backups found")
        return

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Version", style="yellow", no_wrap=True)
    table.add_column("Created", no_wrap=True)
    table.add_column("Files", justify="right", no_wrap=True)
    table.add_column("Status", no_wrap=True)

    for listing in listings:
        backup = listing.backup
        if backup is None:
            backup_id = listing.path.name.removeprefix("backup-")
            status = f"[red]invalid[/red] {escape(listing.errors[0])}"
            table.add_row(backup_id, "-", "-", "-", status)
            continue
        if listing.valid:
            status = "[green]valid[/green]"
        else:
            status = f"[red]invalid[/red] {escape(listing.errors[0])}"
        table.add_row(
            backup.id,
            backup.source_version,
            backup.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(backup.file_count),
            status,
        )

    # Output table to stderr (consistent with user_output convention)
    console = Console(stderr=True, force_terminal=True, width=200)
    console.print(table)
