"""Migration registry loaded from a kit's migrations.toml.

Example migrations.toml:
  [[migrations]]
  version = "1.1.0"
  description = "Rename triggers to triggerPhrases"
  implementation = "config_trigger_phrases_v2"
"""

import tomllib
from collections.abc import Iterable, Mapping
from pathlib import Path

from packaging.version import InvalidVersion, Version

from refit.core.errors import MigrationRegistryError
from refit.migrations.builtin import MIGRATION_IMPLEMENTATIONS
from refit.migrations.models import MigrationDescriptor, MigrationFn

MIGRATIONS_FILENAME = "migrations.toml"


class MigrationRegistry:
    """Ordered, validated set of migrations.

    Construction resolves every implementation ref up front, so an unknown
    ref is reported before anything runs.
    """

    def __init__(
        self,
        descriptors: Iterable[MigrationDescriptor],
        implementations: Mapping[str, MigrationFn] = MIGRATION_IMPLEMENTATIONS,
    ) -> None:
        seen: set[Version] = set()
        resolved: list[tuple[Version, MigrationDescriptor]] = []
        for descriptor in descriptors:
            try:
                version = Version(descriptor.version)
            except InvalidVersion as e:
                raise MigrationRegistryError(
                    f"Invalid migration version '{descriptor.version}'"
                ) from e
            if version in seen:
                raise MigrationRegistryError(
                    f"Duplicate migration version {descriptor.version}"
                )
            if descriptor.implementation_ref not in implementations:
                known = ", ".join(sorted(implementations))
                raise MigrationRegistryError(
                    f"Unknown migration implementation '{descriptor.implementation_ref}' "
                    f"for version {descriptor.version} (known: {known})"
                )
            seen.add(version)
            resolved.append((version, descriptor))

        resolved.sort(key=lambda item: item[0])
        self._entries = tuple(resolved)
        self._implementations = dict(implementations)

    @property
    def descriptors(self) -> tuple[MigrationDescriptor, ...]:
        return tuple(descriptor for _, descriptor in self._entries)

    def implementation_for(self, descriptor: MigrationDescriptor) -> MigrationFn:
        return self._implementations[descriptor.implementation_ref]

    def get_applicable_migrations(
        self, from_version: str, to_version: str
    ) -> list[MigrationDescriptor]:
        """Migrations with from_version < version <= to_version, ascending."""
        lower = Version(from_version)
        upper = Version(to_version)
        return [descriptor for version, descriptor in self._entries if lower < version <= upper]


def _require_str(entry: dict, key: str, index: int) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value:
        raise MigrationRegistryError(f"migrations[{index}].{key} must be a non-empty string")
    return value


def load_migration_registry(
    tree_dir: Path, implementations: Mapping[str, MigrationFn] = MIGRATION_IMPLEMENTATIONS
) -> MigrationRegistry:
    """Load migrations.toml from a kit tree; a missing file is an empty registry.

    Raises:
        MigrationRegistryError: If the file is malformed or references unknown
            implementations
    """
    path = tree_dir / MIGRATIONS_FILENAME
    if not path.exists():
        return MigrationRegistry([], implementations)

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise MigrationRegistryError(f"Invalid TOML in {path}: {e}") from e

    entries = data.get("migrations", [])
    if not isinstance(entries, list):
        raise MigrationRegistryError(f"'migrations' in {path} must be an array of tables")

    descriptors: list[MigrationDescriptor] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MigrationRegistryError(f"migrations[{index}] in {path} must be a table")
        descriptors.append(
            MigrationDescriptor(
                version=_require_str(entry, "version", index),
                description=_require_str(entry, "description", index),
                implementation_ref=_require_str(entry, "implementation", index),
            )
        )
    return MigrationRegistry(descriptors, implementations)
