"""Tests for the refit migrations command."""

from pathlib import Path

from click.testing import CliRunner

from refit.cli.cli import cli
from tests.test_utils.kit_builders import build_context, write_kit

MIGRATIONS = [
    {
        "version": "1.1.0",
        "description": "Rename triggers",
        "implementation": "config_trigger_phrases_v2",
    },
    {
        "version": "1.2.0",
        "description": "Move guidelines index",
        "implementation": "guidelines_index_v3",
    },
]


def test_no_migrations_defined(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")

    result = cli_runner.invoke(cli, ["migrations"], obj=build_context(tmp_project))

    assert result.exit_code == 0, result.output
    assert "No migrations defined" in result.output


def test_lists_all_migrations(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.2.0", migrations=MIGRATIONS)

    result = cli_runner.invoke(cli, ["migrations"], obj=build_context(tmp_project))

    assert result.exit_code == 0, result.output
    assert "config_trigger_phrases_v2" in result.output
    assert "Move guidelines index" in result.output


def test_from_bound_is_exclusive(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.2.0", migrations=MIGRATIONS)

    result = cli_runner.invoke(
        cli, ["migrations", "--from", "1.1.0"], obj=build_context(tmp_project)
    )

    assert result.exit_code == 0, result.output
    assert "guidelines_index_v3" in result.output
    assert "config_trigger_phrases_v2" not in result.output


def test_empty_range(tmp_project: Path, cli_runner: CliRunner) -> None:
    write_kit(tmp_project / "kit", version="1.2.0", migrations=MIGRATIONS)

    result = cli_runner.invoke(
        cli, ["migrations", "--from", "1.2.0"], obj=build_context(tmp_project)
    )

    assert result.exit_code == 0, result.output
    assert "No migrations between 1.2.0 and 1.2.0" in result.output


def test_invalid_version_option(tmp_project: Path, cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(
        cli, ["migrations", "--to", "banana"], obj=build_context(tmp_project)
    )

    assert result.exit_code == 2
    assert "not a valid version" in result.output


def test_unknown_implementation_exits_1(tmp_project: Path, cli_runner: CliRunner) -> None:
    bad = [{"version": "1.1.0", "description": "Mystery", "implementation": "mystery"}]
    write_kit(tmp_project / "kit", version="1.1.0", migrations=bad)

    result = cli_runner.invoke(cli, ["migrations"], obj=build_context(tmp_project))

    assert result.exit_code == 1
    assert "Unknown migration implementation 'mystery'" in result.output
