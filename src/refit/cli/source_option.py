"""Parsing of the --source option shared by upgrade and check."""

from pathlib import Path

import click

from refit.upgrade.models import SourcePreference

SOURCE_HELP = "Where to get the new kit: auto, registry, local or local:<path>"


def parse_source(
    ctx: click.Context, param: click.Parameter, value: str
) -> tuple[SourcePreference, Path | None]:
    """Click callback turning "local:/some/path" into ("local", Path("/some/path"))."""
    if value == "auto":
        return "auto", None
    if value == "registry":
        return "registry", None
    if value == "local":
        return "local", None
    if value.startswith("local:"):
        raw_path = value.removeprefix("local:")
        if not raw_path:
            raise click.BadParameter("expected a path after 'local:'", ctx=ctx, param=param)
        return "local", Path(raw_path).expanduser()
    raise click.BadParameter(
        f"'{value}' is not one of auto, registry, local, local:<path>", ctx=ctx, param=param
    )
