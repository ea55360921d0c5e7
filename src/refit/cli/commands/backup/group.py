"""Backup commands group."""

import click

from refit.cli.commands.backup.list_cmd import list_backups_cmd
from refit.cli.commands.backup.prune_cmd import prune_backups_cmd
from refit.cli.commands.backup.restore_cmd import restore_backup_cmd
from refit.cli.commands.backup.validate_cmd import validate_backup_cmd


@click.group("backup")
def backup_group() -> None:
    """Inspect and restore backups taken before upgrades.

    Common commands:
      list       Show all backups, newest first
      restore    Put a backup back in place of the installed kit
    """


backup_group.add_command(list_backups_cmd)
backup_group.add_command(validate_backup_cmd)
backup_group.add_command(restore_backup_cmd)
backup_group.add_command(prune_backups_cmd)
