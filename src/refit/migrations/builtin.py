"""Built-in migrations a kit release can reference from migrations.toml.

Each migration is idempotent: running it against an already-migrated tree
changes nothing.
"""

import json
import logging
from pathlib import Path

from refit.core.layout import USER_CONFIG_FILENAME
from refit.migrations.models import MigrationContext, MigrationFn

logger = logging.getLogger(__name__)

LEGACY_GUIDELINES_PREFIX = "kit/guidelines"
OBSOLETE_LIST_PATH = Path("scripts") / ".obsolete"


def _load_config(install_dir: Path) -> dict | None:
    path = install_dir / USER_CONFIG_FILENAME
    if not path.exists():
        logger.info("No %s in %s; nothing to migrate", USER_CONFIG_FILENAME, install_dir)
        return None
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data


def _save_config(install_dir: Path, data: dict) -> None:
    path = install_dir / USER_CONFIG_FILENAME
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def config_trigger_phrases_v2(context: MigrationContext) -> None:
    """Rename the legacy `triggers` key to `triggerPhrases` (schema version 2)."""
    data = _load_config(context.install_dir)
    if data is None:
        return

    if "triggers" in data:
        if "triggerPhrases" in data:
            # Both present: the new key wins
            data.pop("triggers")
        else:
            # Preserve key order
            data = {("triggerPhrases" if key == "triggers" else key): v for key, v in data.items()}

    schema_version = data.get("schemaVersion")
    if not isinstance(schema_version, int) or schema_version < 2:
        data["schemaVersion"] = 2
    _save_config(context.install_dir, data)


def guidelines_index_v3(context: MigrationContext) -> None:
    """Point `paths.guidelines` at the top-level guidelines/ directory."""
    data = _load_config(context.install_dir)
    if data is None:
        return

    paths = data.get("paths")
    if not isinstance(paths, dict):
        return
    current = paths.get("guidelines")
    if not isinstance(current, str) or not current.startswith(LEGACY_GUIDELINES_PREFIX):
        return

    paths["guidelines"] = "guidelines" + current[len(LEGACY_GUIDELINES_PREFIX) :]
    logger.debug("Rewrote paths.guidelines: %s -> %s", current, paths["guidelines"])
    _save_config(context.install_dir, data)


def prune_legacy_scripts(context: MigrationContext) -> None:
    """Delete scripts listed in scripts/.obsolete (one path per line, '#' comments)."""
    listing = context.install_dir / OBSOLETE_LIST_PATH
    if not listing.exists():
        return

    scripts_dir = (context.install_dir / "scripts").resolve()
    for raw_line in listing.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        target = (scripts_dir / line).resolve()
        if not target.is_relative_to(scripts_dir):
            raise ValueError(f"Obsolete entry escapes scripts/: {line}")
        if target.is_file():
            target.unlink()
            logger.info("Removed obsolete script %s", line)


MIGRATION_IMPLEMENTATIONS: dict[str, MigrationFn] = {
    "config_trigger_phrases_v2": config_trigger_phrases_v2,
    "guidelines_index_v3": guidelines_index_v3,
    "prune_legacy_scripts": prune_legacy_scripts,
}
