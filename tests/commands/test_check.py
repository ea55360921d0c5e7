"""Tests for the refit check command."""

from pathlib import Path

from click.testing import CliRunner

from refit.cli.cli import cli
from refit.gateway.registry.fake import FakeRegistryClient
from tests.test_utils.kit_builders import build_context, write_kit


def test_check_reports_registry_update(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    ctx = build_context(tmp_project, registry=FakeRegistryClient(trees={}, latest="2.0.0"))

    result = cli_runner.invoke(cli, ["check"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Installed: 1.0.0" in result.output
    assert "Latest:    2.0.0 (registry" in result.output
    assert "major update available" in result.output


def test_check_falls_back_to_local(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    write_kit(tmp_project.parent / "kit-upgrade", version="1.0.1")
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["check"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Latest:    1.0.1 (local directory" in result.output
    assert "patch update available" in result.output


def test_check_up_to_date(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.2.0")
    ctx = build_context(tmp_project, registry=FakeRegistryClient(trees={}, latest="1.2.0"))

    result = cli_runner.invoke(cli, ["check"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Up to date" in result.output


def test_check_without_any_source_exits_2(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["check", "--source", "local"], obj=ctx)

    assert result.exit_code == 2
    assert "No upgrade source found" in result.output


def test_check_unreachable_registry_only_exits_2(
    tmp_project: Path, cli_runner: CliRunner
) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["check", "--source", "registry"], obj=ctx)

    assert result.exit_code == 2
    assert "Could not determine the latest version" in result.output


def test_check_without_install_exits_1(tmp_project: Path, cli_runner: CliRunner) -> None:
    ctx = build_context(tmp_project)

    result = cli_runner.invoke(cli, ["check"], obj=ctx)

    assert result.exit_code == 1
    assert "Manifest unusable" in result.output
