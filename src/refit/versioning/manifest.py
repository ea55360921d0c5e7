"""Manifest file I/O for kit.toml."""

import tomllib
from pathlib import Path

from refit.core.errors import ManifestMissingError
from refit.versioning.models import KitManifest

MANIFEST_FILENAME = "kit.toml"


def get_manifest_path(tree_dir: Path) -> Path:
    """Get path to the kit.toml manifest of an asset tree."""
    return tree_dir / MANIFEST_FILENAME


def load_manifest(tree_dir: Path) -> KitManifest | None:
    """Load kit.toml from an asset tree.

    Returns None if the file does not exist.

    Raises:
        ManifestMissingError: If the file exists but is unparseable or incomplete
    """
    path = get_manifest_path(tree_dir)
    if not path.exists():
        return None

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ManifestMissingError(path, f"invalid TOML: {e}") from e

    kit = data.get("kit")
    if not isinstance(kit, dict):
        raise ManifestMissingError(path, "missing [kit] table")

    name = kit.get("name")
    version = kit.get("version")
    if not isinstance(name, str) or not name:
        raise ManifestMissingError(path, "missing 'name'")
    if not isinstance(version, str) or not version:
        raise ManifestMissingError(path, "missing 'version'")

    return KitManifest(name=name, version=version)


def require_manifest(tree_dir: Path) -> KitManifest:
    """Load kit.toml, raising if it does not exist.

    Raises:
        ManifestMissingError: If the file is absent, unparseable or incomplete
    """
    manifest = load_manifest(tree_dir)
    if manifest is None:
        raise ManifestMissingError(get_manifest_path(tree_dir), "file not found")
    return manifest

