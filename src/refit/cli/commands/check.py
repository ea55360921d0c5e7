"""Check command - report whether a newer kit version is available."""

from pathlib import Path

import click

from refit.cli.constants import EXIT_FAILURE, EXIT_SOURCE_ERROR
from refit.cli.output import error_output, user_output
from refit.cli.source_option import SOURCE_HELP, parse_source
from refit.core.context import RefitContext
from refit.core.errors import ManifestMissingError
from refit.upgrade.models import SourcePreference
from refit.versioning.models import (
    BumpKind,
    LocalSource,
    RegistrySource,
    UpdateCheck,
    VersionSource,
)
from refit.versioning.resolver import VersionResolver


def _candidate_sources(
    ctx: RefitContext,
    resolver: VersionResolver,
    preference: SourcePreference,
    local_path: Path | None,
) -> list[VersionSource]:
    sources: list[VersionSource] = []
    if preference in ("auto", "registry"):
        sources.append(RegistrySource(ctx.config.registry_url))
    if preference in ("auto", "local"):
        path = local_path if local_path is not None else resolver.detect_local_source()
        if path is not None:
            sources.append(LocalSource(path))
    return sources


@click.command("check")
@click.option("--source", "source", default="auto", callback=parse_source, help=SOURCE_HELP)
@click.pass_obj
def check_cmd(ctx: RefitContext, source: tuple[SourcePreference, Path | None]) -> None:
    """Check whether a newer version of the kit is available."""
    preference, local_path = source
    resolver = VersionResolver(ctx)

    try:
        current = resolver.get_current_version()
    except ManifestMissingError as e:
        error_output(str(e))
        raise SystemExit(EXIT_FAILURE) from e

    user_output(f"Installed: {current}")

    checks: list[UpdateCheck] = []
    for candidate in _candidate_sources(ctx, resolver, preference, local_path):
        check = resolver.check_for_updates(candidate)
        if check.error is None:
            break
        checks.append(check)
    else:
        for failed in checks:
            user_output(click.style("  ✗ ", fg="yellow") + f"{failed.error}")
        if not checks:
            error_output("No upgrade source found")
        else:
            error_output("Could not determine the latest version")
        raise SystemExit(EXIT_SOURCE_ERROR)

    user_output(f"Latest:    {check.latest} ({check.source.describe()})")
    if check.bump_kind is BumpKind.NONE:
        user_output(click.style("✓", fg="green") + " Up to date")
        return
    user_output(
        click.style("↑", fg="cyan")
        + f" {check.bump_kind.value} update available; run 'refit upgrade'"
    )
