"""Tests for the built-in migrations."""

import json
from pathlib import Path

import pytest

from refit.migrations.builtin import (
    config_trigger_phrases_v2,
    guidelines_index_v3,
    prune_legacy_scripts,
)
from refit.migrations.models import MigrationContext


def _context(install: Path) -> MigrationContext:
    return MigrationContext(install_dir=install, from_version="1.0.0", to_version="2.0.0")


def _write_config(install: Path, data: dict) -> None:
    install.mkdir(parents=True, exist_ok=True)
    (install / "config.json").write_text(json.dumps(data), encoding="utf-8")


def _read_config(install: Path) -> dict:
    return json.loads((install / "config.json").read_text(encoding="utf-8"))


def test_trigger_phrases_rename_keeps_key_order(tmp_path: Path) -> None:
    _write_config(tmp_path, {"version": "1.0.0", "triggers": {"start": ["go"]}, "theme": "x"})

    config_trigger_phrases_v2(_context(tmp_path))

    data = _read_config(tmp_path)
    assert list(data) == ["version", "triggerPhrases", "theme", "schemaVersion"]
    assert data["triggerPhrases"] == {"start": ["go"]}
    assert data["schemaVersion"] == 2


def test_trigger_phrases_is_idempotent(tmp_path: Path) -> None:
    _write_config(tmp_path, {"version": "1.0.0", "triggers": {"start": ["go"]}})
    config_trigger_phrases_v2(_context(tmp_path))
    once = (tmp_path / "config.json").read_text(encoding="utf-8")

    config_trigger_phrases_v2(_context(tmp_path))

    assert (tmp_path / "config.json").read_text(encoding="utf-8") == once


def test_trigger_phrases_new_key_wins(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {"version": "1.0.0", "triggers": {"start": ["old"]}, "triggerPhrases": {"start": ["new"]}},
    )

    config_trigger_phrases_v2(_context(tmp_path))

    data = _read_config(tmp_path)
    assert "triggers" not in data
    assert data["triggerPhrases"] == {"start": ["new"]}


def test_trigger_phrases_keeps_higher_schema_version(tmp_path: Path) -> None:
    _write_config(tmp_path, {"version": "1.0.0", "schemaVersion": 5})

    config_trigger_phrases_v2(_context(tmp_path))

    assert _read_config(tmp_path)["schemaVersion"] == 5


def test_config_migrations_skip_missing_config(tmp_path: Path) -> None:
    config_trigger_phrases_v2(_context(tmp_path))
    guidelines_index_v3(_context(tmp_path))

    assert not (tmp_path / "config.json").exists()


def test_guidelines_index_rewrites_legacy_prefix(tmp_path: Path) -> None:
    _write_config(tmp_path, {"version": "1.0.0", "paths": {"guidelines": "kit/guidelines/core"}})

    guidelines_index_v3(_context(tmp_path))
    guidelines_index_v3(_context(tmp_path))

    assert _read_config(tmp_path)["paths"]["guidelines"] == "guidelines/core"


def test_guidelines_index_leaves_custom_path(tmp_path: Path) -> None:
    _write_config(tmp_path, {"version": "1.0.0", "paths": {"guidelines": "docs/mine"}})
    before = (tmp_path / "config.json").read_text(encoding="utf-8")

    guidelines_index_v3(_context(tmp_path))

    assert (tmp_path / "config.json").read_text(encoding="utf-8") == before


def test_prune_legacy_scripts_removes_listed_files(tmp_path: Path) -> None:
    scripts = tmp_path / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "old.sh").write_text("old", encoding="utf-8")
    (scripts / "keep.sh").write_text("keep", encoding="utf-8")
    (scripts / ".obsolete").write_text("# removed in 2.0\n\nold.sh\ngone.sh\n", encoding="utf-8")

    prune_legacy_scripts(_context(tmp_path))
    prune_legacy_scripts(_context(tmp_path))

    assert not (scripts / "old.sh").exists()
    assert (scripts / "keep.sh").exists()


def test_prune_legacy_scripts_rejects_escaping_entries(tmp_path: Path) -> None:
    scripts = tmp_path / "scripts"
    scripts.mkdir(parents=True)
    (tmp_path / "config.json").write_text("{}", encoding="utf-8")
    (scripts / ".obsolete").write_text("../config.json\n", encoding="utf-8")

    with pytest.raises(ValueError, match="escapes scripts/"):
        prune_legacy_scripts(_context(tmp_path))

    assert (tmp_path / "config.json").exists()
