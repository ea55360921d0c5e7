"""Tests for the refit upgrade command."""

import dataclasses
from pathlib import Path

from click.testing import CliRunner

from refit.cli.cli import cli
from refit.core.config import RefitConfig
from refit.gateway.command_runner.fake import FakeCommandRunner
from refit.gateway.prompter.fake import FakePrompter
from tests.test_utils.kit_builders import build_context, read_config, write_kit


def _setup(project: Path, *, installed: str = "1.0.0", release: str = "1.2.0") -> Path:
    install = write_kit(project / "kit", version=installed)
    write_kit(project.parent / "kit-upgrade", version=release)
    return install


def test_upgrade_success(tmp_project: Path, cli_runner: CliRunner) -> None:
    install = _setup(tmp_project)
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["upgrade", "--force"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "1.0.0 -> 1.2.0" in result.output
    assert "Upgraded to 1.2.0" in result.output
    assert "Backup: " in result.output
    assert (install / "templates" / "plan.md").read_text() == "# Plan template 1.2.0\n"


def test_upgrade_dry_run_lists_files(tmp_project: Path, cli_runner: CliRunner) -> None:
    """Dry run prints the full file plan and leaves the kit alone."""
    install = _setup(tmp_project)
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["upgrade", "--dry-run"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Overwrite:" in result.output
    assert "templates/plan.md" in result.output
    assert "Preserve:" in result.output
    assert "Dry run: no changes made" in result.output
    assert (install / "templates" / "plan.md").read_text() == "# Plan template 1.0.0\n"


def test_upgrade_already_up_to_date(tmp_project: Path, cli_runner: CliRunner) -> None:
    _setup(tmp_project, installed="1.2.0", release="1.2.0")
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["upgrade"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Already up to date (1.2.0)" in result.output


def test_upgrade_declined(tmp_project: Path, cli_runner: CliRunner) -> None:
    install = _setup(tmp_project)
    ctx = build_context(tmp_project, prompter=FakePrompter(answer=False))

    result = cli_runner.invoke(cli, ["upgrade"], obj=ctx)

    assert result.exit_code == 1
    assert "Upgrade cancelled" in result.output
    assert (install / "templates" / "plan.md").read_text() == "# Plan template 1.0.0\n"


def test_upgrade_without_source_exits_2(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["upgrade", "--force"], obj=ctx)

    assert result.exit_code == 2
    assert "No upgrade source available" in result.output
    assert "Phase reached: aborted" in result.output


def test_upgrade_with_pinned_local_source(tmp_project: Path, cli_runner: CliRunner) -> None:
    install = write_kit(tmp_project / "kit", version="1.0.0")
    pinned = write_kit(tmp_project.parent / "elsewhere", version="1.5.0")
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["upgrade", "-f", "--source", f"local:{pinned}"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Upgraded to 1.5.0" in result.output
    assert "Style guide 1.5.0" in (install / "guidelines" / "style.md").read_text()


def test_upgrade_rejects_unknown_source(tmp_project: Path, cli_runner: CliRunner) -> None:
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["upgrade", "--source", "ftp"], obj=ctx)

    assert result.exit_code == 2
    assert "is not one of auto, registry, local" in result.output


def test_upgrade_explicit_target_not_offered(tmp_project: Path, cli_runner: CliRunner) -> None:
    _setup(tmp_project)
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(
        cli, ["upgrade", "-f", "--source", "local", "--target-version", "1.3.0"], obj=ctx
    )

    assert result.exit_code == 2
    assert "1.3.0" in result.output


def test_upgrade_rolled_back_exits_1(tmp_project: Path, cli_runner: CliRunner) -> None:
    """A failing post-upgrade command restores the previous kit."""
    install = _setup(tmp_project)
    config = dataclasses.replace(
        RefitConfig.defaults(), post_upgrade_commands=(("make", "check"),)
    )
    ctx = build_context(
        tmp_project, config=config, command_runner=FakeCommandRunner(missing={"make"})
    )

    result = cli_runner.invoke(cli, ["upgrade", "-f"], obj=ctx)

    assert result.exit_code == 1
    assert "could not start make" in result.output
    assert "Rolled back" in result.output
    assert "Phase reached: rolled_back" in result.output
    assert read_config(install)["version"] == "1.0.0"
    assert (install / "templates" / "plan.md").read_text() == "# Plan template 1.0.0\n"
