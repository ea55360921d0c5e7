"""Load refit configuration from .refit/config.toml.

Example config:
  install_dir = "kit"
  kit_name = "refit-kit"
  registry_url = "https://registry.example.com/refit-kit"
  network_timeout_seconds = 3.0
  local_source_candidates = ["../kit-upgrade", "../kit-latest"]
  exclude = ["node_modules", "__pycache__"]
  backup_count_tolerance = 0

  [strategies]
  preserve = ["/config.json"]
  merge = []

  [post_upgrade]
  commands = ["npm install"]
"""

import os
import shlex
import tomllib
from dataclasses import dataclass
from pathlib import Path

from refit.core.errors import ConfigError

CONFIG_FILENAME = "config.toml"
STATE_DIR_NAME = ".refit"

REGISTRY_URL_ENV = "REFIT_REGISTRY_URL"
UPGRADE_PATH_ENV = "REFIT_UPGRADE_PATH"

DEFAULT_INSTALL_DIR = "kit"
DEFAULT_KIT_NAME = "refit-kit"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org/refit-kit"
DEFAULT_NETWORK_TIMEOUT_SECONDS = 3.0
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 30.0
DEFAULT_LOCAL_SOURCE_CANDIDATES = ("../kit-upgrade", "../kit-latest")
DEFAULT_EXCLUDE = ("node_modules", "__pycache__")
DEFAULT_BACKUP_COUNT_TOLERANCE = 0


@dataclass(frozen=True)
class StrategyOverrides:
    """Pattern lists from the [strategies] table.

    When present they replace the built-in strategy table entirely.
    """

    preserve: tuple[str, ...]
    overwrite: tuple[str, ...]
    merge: tuple[str, ...]


@dataclass(frozen=True)
class RefitConfig:
    """In-memory representation of `.refit/config.toml` plus env overrides."""

    install_dir: str
    kit_name: str
    registry_url: str
    network_timeout_seconds: float
    download_timeout_seconds: float
    local_source_candidates: tuple[str, ...]
    exclude: tuple[str, ...]
    backup_count_tolerance: int
    strategies: StrategyOverrides | None
    post_upgrade_commands: tuple[tuple[str, ...], ...]  # argv per command

    @staticmethod
    def defaults() -> "RefitConfig":
        return RefitConfig(
            install_dir=DEFAULT_INSTALL_DIR,
            kit_name=DEFAULT_KIT_NAME,
            registry_url=DEFAULT_REGISTRY_URL,
            network_timeout_seconds=DEFAULT_NETWORK_TIMEOUT_SECONDS,
            download_timeout_seconds=DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
            local_source_candidates=DEFAULT_LOCAL_SOURCE_CANDIDATES,
            exclude=DEFAULT_EXCLUDE,
            backup_count_tolerance=DEFAULT_BACKUP_COUNT_TOLERANCE,
            strategies=None,
            post_upgrade_commands=(),
        )


def get_config_path(project_root: Path) -> Path:
    """Get path to .refit/config.toml."""
    return project_root / STATE_DIR_NAME / CONFIG_FILENAME


def _str_list(data: dict, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' must be a list of strings, got: {value!r}")
    return tuple(value)


def _str_value(data: dict, key: str, default: str) -> str:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{key}' must be a non-empty string, got: {value!r}")
    return value


def _positive_float(data: dict, key: str, default: float) -> float:
    if key not in data:
        return default
    value = data[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive number, got: {value!r}")
    return float(value)


def _parse_strategies(data: dict) -> StrategyOverrides | None:
    table = data.get("strategies")
    if table is None:
        return None
    if not isinstance(table, dict):
        raise ConfigError("[strategies] must be a table")
    return StrategyOverrides(
        preserve=_str_list(table, "preserve", ()),
        overwrite=_str_list(table, "overwrite", ()),
        merge=_str_list(table, "merge", ()),
    )


def _parse_commands(post: dict) -> tuple[tuple[str, ...], ...]:
    """Split [post_upgrade] commands into argv tuples, rejecting bad entries."""
    commands: list[tuple[str, ...]] = []
    for command in _str_list(post, "commands", ()):
        try:
            argv = tuple(shlex.split(command))
        except ValueError as e:
            raise ConfigError(f"'post_upgrade.commands' entry {command!r} is invalid: {e}") from e
        if not argv:
            raise ConfigError("'post_upgrade.commands' entries must not be empty")
        commands.append(argv)
    return tuple(commands)


def _install_dir(project_root: Path, data: dict, default: str) -> str:
    value = _str_value(data, "install_dir", default)
    install = (project_root / value).resolve()
    state = (project_root / STATE_DIR_NAME).resolve()
    if state.is_relative_to(install) or install.is_relative_to(state):
        raise ConfigError(
            f"'install_dir' must not contain or lie inside {STATE_DIR_NAME}/, got: {value!r}"
        )
    return value


def load_config(project_root: Path, env: dict[str, str] | None = None) -> RefitConfig:
    """Load config.toml from the project's .refit directory if present.

    Missing file yields defaults. Environment variables override the
    registry URL and prepend an extra local source candidate.

    Raises:
        ConfigError: If the file cannot be parsed or contains invalid values
    """
    environ = os.environ if env is None else env
    defaults = RefitConfig.defaults()

    cfg_path = get_config_path(project_root)
    data: dict = {}
    if cfg_path.exists():
        try:
            data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {cfg_path}: {e}") from e

    tolerance = data.get("backup_count_tolerance", defaults.backup_count_tolerance)
    if isinstance(tolerance, bool) or not isinstance(tolerance, int) or tolerance < 0:
        raise ConfigError(
            f"'backup_count_tolerance' must be a non-negative integer, got: {tolerance!r}"
        )

    post = data.get("post_upgrade", {})
    if not isinstance(post, dict):
        raise ConfigError("[post_upgrade] must be a table")

    registry_url = _str_value(data, "registry_url", defaults.registry_url)
    override_url = environ.get(REGISTRY_URL_ENV)
    if override_url:
        registry_url = override_url

    candidates = _str_list(data, "local_source_candidates", defaults.local_source_candidates)
    override_path = environ.get(UPGRADE_PATH_ENV)
    if override_path:
        candidates = (override_path, *candidates)

    return RefitConfig(
        install_dir=_install_dir(project_root, data, defaults.install_dir),
        kit_name=_str_value(data, "kit_name", defaults.kit_name),
        registry_url=registry_url,
        network_timeout_seconds=_positive_float(
            data, "network_timeout_seconds", defaults.network_timeout_seconds
        ),
        download_timeout_seconds=_positive_float(
            data, "download_timeout_seconds", defaults.download_timeout_seconds
        ),
        local_source_candidates=candidates,
        exclude=_str_list(data, "exclude", defaults.exclude),
        backup_count_tolerance=tolerance,
        strategies=_parse_strategies(data),
        post_upgrade_commands=_parse_commands(post),
    )
