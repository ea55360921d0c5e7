"""Shared fixtures for refit tests."""

from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory for testing.

    The install dir and .refit/ state dir are created beneath it by the
    tests themselves; sibling directories of the project serve as local
    upgrade sources.
    """
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
