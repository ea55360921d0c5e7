"""Upgrade command - move the installed kit to a newer version."""

from pathlib import Path

import click

from refit.cli.constants import EXIT_OK, exit_code_for
from refit.cli.output import error_output, user_output
from refit.cli.source_option import SOURCE_HELP, parse_source
from refit.core.context import RefitContext
from refit.upgrade.models import SourcePreference, UpgradeOptions, UpgradePlan, UpgradeResult
from refit.upgrade.orchestrator import UpgradeOrchestrator
from refit.upgrade.state import UpgradePhase


def _render_file_list(title: str, paths: tuple[str, ...]) -> None:
    if not paths:
        return
    user_output(f"  {title}:")
    for path in paths:
        user_output(f"    {path}")


def _render_plan(plan: UpgradePlan, *, verbose: bool) -> None:
    user_output(
        click.style(f"{plan.from_version} -> {plan.to_version}", bold=True)
        + f" ({plan.bump_kind.value}) from {plan.source.describe()}"
    )
    user_output(
        f"  {len(plan.files_to_overwrite)} to overwrite, "
        f"{len(plan.files_to_preserve)} to preserve, "
        f"{len(plan.files_to_merge)} to merge"
    )
    if verbose:
        _render_file_list("Overwrite", plan.files_to_overwrite)
        _render_file_list("Preserve", plan.files_to_preserve)
        _render_file_list("Merge", plan.files_to_merge)

    if plan.applicable_migrations:
        user_output("  Migrations:")
        for migration in plan.applicable_migrations:
            user_output(f"    {migration.version}  {migration.description}")

    for conflict in plan.merge_conflicts:
        user_output(click.style("  Merge conflict in ", fg="yellow") + conflict)


def _render_result(result: UpgradeResult) -> None:
    phase = result.final_phase
    if phase is UpgradePhase.COMPLETE and result.plan is not None and result.plan.up_to_date:
        current = result.plan.from_version
        user_output(click.style("✓", fg="green") + f" Already up to date ({current})")
        return
    if phase is UpgradePhase.STOPPED:
        user_output(click.style("Dry run: no changes made", fg="cyan"))
        return
    if phase is UpgradePhase.COMPLETE:
        assert result.plan is not None
        user_output(click.style("✓", fg="green") + f" Upgraded to {result.plan.to_version}")
        for migration in result.applied_migrations:
            user_output(f"  applied migration {migration.version}: {migration.description}")
        if result.backup_id is not None:
            user_output(f"  Backup: {result.backup_id}")
        return

    assert result.error is not None
    if result.error.error_type == "declined":
        user_output("Upgrade cancelled")
        return

    error_output(result.error.message)
    if phase is UpgradePhase.ROLLED_BACK:
        user_output(
            click.style("Rolled back", fg="yellow")
            + f" to the state before the upgrade (backup {result.backup_id})"
        )
    elif phase is UpgradePhase.FATAL:
        user_output(
            click.style("Rollback failed.", fg="red", bold=True)
            + f" Recover manually from {result.backup_path}"
        )
    user_output(f"  Phase reached: {phase.value}")


@click.command("upgrade")
@click.option("--dry-run", is_flag=True, help="Show the plan without changing anything")
@click.option("-f", "--force", is_flag=True, help="Do not ask for confirmation")
@click.option("--source", "source", default="auto", callback=parse_source, help=SOURCE_HELP)
@click.option(
    "--target-version",
    default="latest",
    show_default=True,
    help="Version to upgrade to",
)
@click.pass_obj
def upgrade_cmd(
    ctx: RefitContext,
    dry_run: bool,
    force: bool,
    source: tuple[SourcePreference, Path | None],
    target_version: str,
) -> None:
    """Upgrade the installed kit, keeping local customizations.

    A backup is taken before anything changes; if any step fails the kit
    is restored from it.
    """
    preference, local_path = source
    options = UpgradeOptions(
        target_version=target_version,
        dry_run=dry_run,
        skip_confirmation=force,
        source_preference=preference,
        local_path=local_path,
    )
    result = UpgradeOrchestrator(ctx).run(options)

    if result.plan is not None and not result.plan.up_to_date:
        _render_plan(result.plan, verbose=dry_run)
    _render_result(result)

    code = exit_code_for(result)
    if code != EXIT_OK:
        raise SystemExit(code)
