"""Tests for MigrationRegistry and migrations.toml loading."""

from pathlib import Path

import pytest

from refit.core.errors import MigrationRegistryError
from refit.migrations.models import MigrationContext, MigrationDescriptor
from refit.migrations.registry import MigrationRegistry, load_migration_registry


def _noop(context: MigrationContext) -> None:
    return None


IMPLEMENTATIONS = {"noop": _noop}


def _descriptor(version: str, ref: str = "noop") -> MigrationDescriptor:
    return MigrationDescriptor(
        version=version, description=f"step {version}", implementation_ref=ref
    )


def test_descriptors_sorted_by_version() -> None:
    registry = MigrationRegistry(
        [_descriptor("1.10.0"), _descriptor("1.2.0"), _descriptor("1.9.1")], IMPLEMENTATIONS
    )

    assert [d.version for d in registry.descriptors] == ["1.2.0", "1.9.1", "1.10.0"]


@pytest.mark.parametrize(
    ("from_version", "to_version", "expected"),
    [
        ("1.0.0", "1.2.0", ["1.1.0", "1.2.0"]),
        ("1.1.0", "1.2.0", ["1.2.0"]),
        ("1.0.0", "1.0.5", []),
        ("1.2.0", "1.2.0", []),
        ("0.9.0", "2.0.0", ["1.1.0", "1.2.0", "1.3.0"]),
    ],
)
def test_get_applicable_migrations_is_half_open(
    from_version: str, to_version: str, expected: list[str]
) -> None:
    registry = MigrationRegistry(
        [_descriptor("1.3.0"), _descriptor("1.1.0"), _descriptor("1.2.0")], IMPLEMENTATIONS
    )

    applicable = registry.get_applicable_migrations(from_version, to_version)

    assert [d.version for d in applicable] == expected


def test_unknown_implementation_is_rejected_up_front() -> None:
    with pytest.raises(MigrationRegistryError, match="Unknown migration implementation 'missing'"):
        MigrationRegistry([_descriptor("1.1.0", ref="missing")], IMPLEMENTATIONS)


def test_duplicate_version_is_rejected() -> None:
    with pytest.raises(MigrationRegistryError, match="Duplicate"):
        MigrationRegistry([_descriptor("1.1.0"), _descriptor("1.1")], IMPLEMENTATIONS)


def test_invalid_version_is_rejected() -> None:
    with pytest.raises(MigrationRegistryError, match="Invalid migration version"):
        MigrationRegistry([_descriptor("not-a-version")], IMPLEMENTATIONS)


def test_implementation_for_resolves_ref() -> None:
    descriptor = _descriptor("1.1.0")
    registry = MigrationRegistry([descriptor], IMPLEMENTATIONS)

    assert registry.implementation_for(descriptor) is _noop


def test_load_missing_file_gives_empty_registry(tmp_path: Path) -> None:
    assert load_migration_registry(tmp_path).descriptors == ()


def test_load_reads_array_of_tables(tmp_path: Path) -> None:
    (tmp_path / "migrations.toml").write_text(
        "[[migrations]]\n"
        'version = "1.2.0"\n'
        'description = "Second"\n'
        'implementation = "guidelines_index_v3"\n'
        "\n"
        "[[migrations]]\n"
        'version = "1.1.0"\n'
        'description = "First"\n'
        'implementation = "config_trigger_phrases_v2"\n',
        encoding="utf-8",
    )

    registry = load_migration_registry(tmp_path)

    assert registry.descriptors == (
        MigrationDescriptor("1.1.0", "First", "config_trigger_phrases_v2"),
        MigrationDescriptor("1.2.0", "Second", "guidelines_index_v3"),
    )


def test_load_rejects_missing_keys(tmp_path: Path) -> None:
    (tmp_path / "migrations.toml").write_text(
        '[[migrations]]\nversion = "1.1.0"\nimplementation = "noop"\n', encoding="utf-8"
    )

    with pytest.raises(MigrationRegistryError, match=r"migrations\[0\]\.description"):
        load_migration_registry(tmp_path, IMPLEMENTATIONS)


def test_load_rejects_invalid_toml(tmp_path: Path) -> None:
    (tmp_path / "migrations.toml").write_text("[[migrations]\n", encoding="utf-8")

    with pytest.raises(MigrationRegistryError, match="Invalid TOML"):
        load_migration_registry(tmp_path)


def test_load_rejects_non_array(tmp_path: Path) -> None:
    (tmp_path / "migrations.toml").write_text('migrations = "nope"\n', encoding="utf-8")

    with pytest.raises(MigrationRegistryError, match="array of tables"):
        load_migration_registry(tmp_path)
