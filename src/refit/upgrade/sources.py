"""Pick the source for an upgrade and materialize its tree on disk.

With the "auto" preference the registry is tried first; any registry
failure (unreachable, no usable version, failed download) falls back to a
validated local source. Every failed attempt is recorded so the final
error can say what was tried.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from packaging.version import Version

from refit.core.context import RefitContext
from refit.core.errors import (
    NoSourceAvailableError,
    SourceInvalidError,
    SourceUnavailableError,
)
from refit.upgrade.models import UpgradeOptions
from refit.versioning.manifest import load_manifest
from refit.versioning.models import LocalSource, RegistrySource, VersionInfo, VersionSource
from refit.versioning.resolver import LATEST, VersionResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSource:
    """A usable source and the tree it provides.

    tree_dir is None when the install is already at the resolved version
    (nothing needs downloading). staging_dir is set for registry downloads
    and must be removed by the caller.
    """

    source: VersionSource
    version_info: VersionInfo
    tree_dir: Path | None
    staging_dir: Path | None


def _is_up_to_date(info: VersionInfo) -> bool:
    return Version(info.latest) <= Version(info.current)


def _check_not_downgrade(info: VersionInfo, target: str) -> None:
    if target != LATEST and Version(info.latest) < Version(info.current):
        raise SourceInvalidError(
            f"Target version {info.latest} is older than installed {info.current}; "
            "downgrades are not supported (restore a backup instead)"
        )


class SourceDetector:
    def __init__(self, ctx: RefitContext, resolver: VersionResolver) -> None:
        self._ctx = ctx
        self._resolver = resolver

    def detect(self, options: UpgradeOptions) -> ResolvedSource:
        """Resolve the source honouring options.source_preference.

        Raises:
            ManifestMissingError: If the installed version cannot be read
            SourceInvalidError: If the target is a downgrade
            NoSourceAvailableError: If no source could provide the target
        """
        attempts: list[str] = []
        if options.source_preference in ("auto", "registry"):
            resolved = self._try_registry(options, attempts)
            if resolved is not None:
                return resolved
            if options.source_preference == "auto":
                logger.warning("Registry unavailable; falling back to a local source")

        if options.source_preference in ("auto", "local"):
            resolved = self._try_local(options, attempts)
            if resolved is not None:
                return resolved

        raise NoSourceAvailableError(attempts)

    def _try_registry(
        self, options: UpgradeOptions, attempts: list[str]
    ) -> ResolvedSource | None:
        source = RegistrySource(self._ctx.config.registry_url)
        availability = self._resolver.check_source_availability(source)
        if not availability.available:
            attempts.append(f"{source.describe()}: {availability.reason}")
            logger.info("Registry ping failed: %s", availability.reason)
            return None

        try:
            info = self._resolver.resolve_version_info(source, options.target_version)
        except (SourceUnavailableError, SourceInvalidError) as e:
            attempts.append(f"{source.describe()}: {e}")
            return None
        _check_not_downgrade(info, options.target_version)

        if _is_up_to_date(info):
            return ResolvedSource(source=source, version_info=info, tree_dir=None, staging_dir=None)

        tarball_url = self._resolver.get_tarball_url(source, info.latest)
        if tarball_url is None:
            attempts.append(f"{source.describe()}: no tarball published for {info.latest}")
            return None

        staging_dir = self._ctx.staging_dir / info.latest
        if staging_dir.exists():
            shutil.rmtree(staging_dir)
        try:
            tree_dir = self._ctx.registry.download_tree(
                tarball_url, staging_dir, timeout=self._ctx.config.download_timeout_seconds
            )
        except SourceUnavailableError as e:
            shutil.rmtree(staging_dir, ignore_errors=True)
            attempts.append(f"{source.describe()}: download failed: {e}")
            logger.warning("Download of %s failed: %s", tarball_url, e)
            return None

        problem = self._check_tree(tree_dir, info.latest)
        if problem is not None:
            shutil.rmtree(staging_dir, ignore_errors=True)
            attempts.append(f"{source.describe()}: downloaded release {problem}")
            return None

        logger.debug("Downloaded %s into %s", info.latest, tree_dir)
        return ResolvedSource(
            source=source, version_info=info, tree_dir=tree_dir, staging_dir=staging_dir
        )

    def _try_local(self, options: UpgradeOptions, attempts: list[str]) -> ResolvedSource | None:
        if options.local_path is not None:
            path = options.local_path
            if not path.is_absolute():
                path = (self._ctx.cwd / path).resolve()
            if not self._resolver.validate_local_source(path):
                attempts.append(f"local directory {path}: not a valid {self._ctx.config.kit_name}")
                return None
        else:
            found = self._resolver.detect_local_source()
            if found is None:
                candidates = ", ".join(self._ctx.config.local_source_candidates)
                attempts.append(f"local sources: no valid kit found in {candidates}")
                return None
            path = found

        source = LocalSource(path)
        try:
            info = self._resolver.resolve_version_info(source, options.target_version)
        except (SourceUnavailableError, SourceInvalidError) as e:
            attempts.append(f"{source.describe()}: {e}")
            return None
        _check_not_downgrade(info, options.target_version)

        if _is_up_to_date(info):
            return ResolvedSource(source=source, version_info=info, tree_dir=None, staging_dir=None)
        return ResolvedSource(source=source, version_info=info, tree_dir=path, staging_dir=None)

    def _check_tree(self, tree_dir: Path, expected_version: str) -> str | None:
        if not self._resolver.validate_local_source(tree_dir):
            return f"is not a valid {self._ctx.config.kit_name}"
        manifest = load_manifest(tree_dir)
        if manifest is None or Version(manifest.version) != Version(expected_version):
            found = manifest.version if manifest is not None else "none"
            return f"has version {found}, expected {expected_version}"
        return None
