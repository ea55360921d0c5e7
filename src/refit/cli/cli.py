import logging
from pathlib import Path

import click

from refit.cli.commands.backup.group import backup_group
from refit.cli.commands.check import check_cmd
from refit.cli.commands.migrations_cmd import migrations_cmd
from refit.cli.commands.upgrade import upgrade_cmd
from refit.cli.constants import EXIT_FAILURE
from refit.cli.output import error_output
from refit.core.context import create_context
from refit.core.errors import ConfigError

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="refit")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Upgrade an installed kit without losing local customizations."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s")

    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        try:
            ctx.obj = create_context(Path.cwd())
        except ConfigError as e:
            error_output(str(e))
            raise SystemExit(EXIT_FAILURE) from e


cli.add_command(upgrade_cmd)
cli.add_command(check_cmd)
cli.add_command(backup_group)
cli.add_command(migrations_cmd)
