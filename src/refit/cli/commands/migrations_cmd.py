"""Migrations command - list migrations shipped with the installed kit."""

import click
from packaging.version import InvalidVersion, Version
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from refit.cli.constants import EXIT_FAILURE
from refit.cli.output import error_output, user_output
from refit.core.context import RefitContext
from refit.core.errors import MigrationRegistryError
from refit.migrations.registry import load_migration_registry


def _check_version(value: str | None, option: str) -> None:
    if value is None:
        return
    try:
        Version(value)
    except InvalidVersion as e:
        raise click.BadParameter(f"'{value}' is not a valid version", param_hint=option) from e


@click.command("migrations")
@click.option("--from", "from_version", default=None, help="Exclusive lower bound")
@click.option("--to", "to_version", default=None, help="Inclusive upper bound")
@click.pass_obj
def migrations_cmd(ctx: RefitContext, from_version: str | None, to_version: str | None) -> None:
    """List migrations from the installed kit's migrations.toml.

    With --from/--to, only migrations with from < version <= to are shown.
    """
    _check_version(from_version, "--from")
    _check_version(to_version, "--to")

    try:
        registry = load_migration_registry(ctx.install_dir)
    except MigrationRegistryError as e:
        error_output(str(e))
        raise SystemExit(EXIT_FAILURE) from e

    descriptors = registry.descriptors
    if not descriptors:
        user_output("No migrations defined")
        return

    lower = from_version if from_version is not None else "0"
    upper = to_version if to_version is not None else descriptors[-1].version
    applicable = registry.get_applicable_migrations(lower, upper)
    if not applicable:
        user_output(f"No migrations between {lower} and {upper}")
        return

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Version", style="cyan", no_wrap=True)
    table.add_column("Implementation", style="yellow", no_wrap=True)
    table.add_column("Description")
    for descriptor in applicable:
        table.add_row(
            descriptor.version,
            descriptor.implementation_ref,
            escape(descriptor.description),
        )

    console = Console(stderr=True, force_terminal=True, width=200)
    console.print(table)
