"""Version detection for the installed kit and its upgrade sources.

Supports two kinds of source:
- registry: queries a remote package document for the latest published version
- local: reads the manifest of a kit directory on disk (offline/dev upgrades)

Network failures are never raised from lookups: they return None so callers
can fall back to the next source.
"""

import logging
from pathlib import Path

from packaging.version import InvalidVersion, Version

from refit.core.context import RefitContext
from refit.core.errors import ManifestMissingError, SourceInvalidError, SourceUnavailableError
from refit.core.layout import REQUIRED_SUBDIRS
from refit.versioning.manifest import get_manifest_path, load_manifest, require_manifest
from refit.versioning.models import (
    BumpKind,
    KitManifest,
    RegistrySource,
    SourceAvailability,
    UpdateCheck,
    VersionInfo,
    VersionSource,
)

logger = logging.getLogger(__name__)

LATEST = "latest"


def parse_version(version: str) -> Version | None:
    """Parse a version string, returning None if it is not a valid version."""
    try:
        return Version(version)
    except InvalidVersion:
        return None


def compute_bump_kind(current: str, latest: str) -> BumpKind:
    """Classify the step from current to latest.

    Returns BumpKind.NONE when latest is not newer than current.
    """
    current_v = Version(current)
    latest_v = Version(latest)
    if latest_v <= current_v:
        return BumpKind.NONE
    if latest_v.major != current_v.major:
        return BumpKind.MAJOR
    if latest_v.minor != current_v.minor:
        return BumpKind.MINOR
    return BumpKind.PATCH


class VersionResolver:
    """Resolve current and target kit versions for an upgrade run."""

    def __init__(self, ctx: RefitContext) -> None:
        self._ctx = ctx

    def get_current_version(self) -> str:
        """Read the installed version from the install manifest.

        Raises:
            ManifestMissingError: If kit.toml is absent, unparseable or has an
                invalid version
        """
        manifest = require_manifest(self._ctx.install_dir)
        if parse_version(manifest.version) is None:
            raise ManifestMissingError(
                get_manifest_path(self._ctx.install_dir),
                f"invalid version '{manifest.version}'",
            )
        return manifest.version

    def get_latest_version(self, source: VersionSource) -> str | None:
        """Return the latest version offered by source, or None if unknown."""
        if isinstance(source, RegistrySource):
            return self._latest_from_registry(source)
        return self._latest_from_local(source.path)

    def check_for_updates(self, source: VersionSource) -> UpdateCheck:
        """Compare the installed version against the latest one from source.

        Raises:
            ManifestMissingError: If the installed version cannot be read
        """
        current = self.get_current_version()
        latest = self.get_latest_version(source)
        if latest is None:
            return UpdateCheck(
                has_update=False,
                bump_kind=BumpKind.NONE,
                current=current,
                latest=None,
                source=source,
                error=f"Could not fetch latest version from {source.describe()}",
            )

        bump = compute_bump_kind(current, latest)
        return UpdateCheck(
            has_update=bump is not BumpKind.NONE,
            bump_kind=bump,
            current=current,
            latest=latest,
            source=source,
            error=None,
        )

    def resolve_version_info(self, source: VersionSource, target: str) -> VersionInfo:
        """Resolve the version pair for this run.

        Args:
            source: Where the new kit comes from
            target: "latest" or an explicit version the source must offer

        Raises:
            ManifestMissingError: If the installed version cannot be read
            SourceUnavailableError: If the source reports no usable version
            SourceInvalidError: If an explicit target is not offered by source
        """
        current = self.get_current_version()

        if target == LATEST:
            latest = self.get_latest_version(source)
            if latest is None:
                raise SourceUnavailableError(
                    f"No usable version reported by {source.describe()}"
                )
            return VersionInfo(
                current=current, latest=latest, bump_kind=compute_bump_kind(current, latest)
            )

        if parse_version(target) is None:
            raise SourceInvalidError(f"Invalid target version '{target}'")

        if not self.source_offers_version(source, target):
            raise SourceInvalidError(f"Version {target} is not available from {source.describe()}")
        return VersionInfo(
            current=current, latest=target, bump_kind=compute_bump_kind(current, target)
        )

    def source_offers_version(self, source: VersionSource, version: str) -> bool:
        """Check whether source can provide exactly `version`."""
        if isinstance(source, RegistrySource):
            return self.get_tarball_url(source, version) is not None
        manifest = self._read_local_manifest(source.path)
        if manifest is None:
            return False
        return Version(manifest.version) == Version(version)

    def get_tarball_url(self, source: RegistrySource, version: str) -> str | None:
        """Look up the release tarball URL for a published version."""
        document = self._ctx.registry.fetch_package_document(
            source.url, timeout=self._ctx.config.network_timeout_seconds
        )
        if document is None:
            return None
        versions = document.get("versions")
        if not isinstance(versions, dict):
            return None
        entry = versions.get(version)
        if not isinstance(entry, dict):
            return None
        dist = entry.get("dist")
        if not isinstance(dist, dict):
            return None
        tarball = dist.get("tarball")
        if not isinstance(tarball, str) or not tarball:
            return None
        return tarball

    def check_source_availability(self, source: VersionSource) -> SourceAvailability:
        """Check a source cheaply (HEAD request or directory stat)."""
        if isinstance(source, RegistrySource):
            return self._ctx.registry.ping(
                source.url, timeout=self._ctx.config.network_timeout_seconds
            )
        if not source.path.is_dir():
            return SourceAvailability(available=False, reason=f"Not a directory: {source.path}")
        return SourceAvailability(available=True, reason=None)

    def validate_local_source(self, path: Path) -> bool:
        """Check that path holds a genuine kit.

        Requires kit.toml naming the configured kit and the required
        subdirectories. Returns False for "not valid"; only unexpected I/O
        errors propagate.
        """
        if not path.is_dir():
            return False

        try:
            manifest = load_manifest(path)
        except ManifestMissingError as e:
            logger.debug("Rejecting local source %s: %s", path, e)
            return False

        if manifest is None:
            logger.debug("Rejecting local source %s: no kit.toml", path)
            return False

        if manifest.name != self._ctx.config.kit_name:
            logger.debug(
                "Rejecting local source %s: manifest name '%s' (expected '%s')",
                path,
                manifest.name,
                self._ctx.config.kit_name,
            )
            return False

        if parse_version(manifest.version) is None:
            return False

        for subdir in REQUIRED_SUBDIRS:
            if not (path / subdir).is_dir():
                logger.debug("Rejecting local source %s: missing %s/", path, subdir)
                return False

        return True

    def detect_local_source(self) -> Path | None:
        """Return the first valid local source among the configured candidates."""
        for candidate in self._ctx.config.local_source_candidates:
            path = Path(candidate).expanduser()
            if not path.is_absolute():
                path = (self._ctx.cwd / path).resolve()
            if self.validate_local_source(path):
                return path
        return None

    def _latest_from_registry(self, source: RegistrySource) -> str | None:
        document = self._ctx.registry.fetch_package_document(
            source.url, timeout=self._ctx.config.network_timeout_seconds
        )
        if document is None:
            return None

        dist_tags = document.get("dist-tags")
        if not isinstance(dist_tags, dict):
            logger.warning("No dist-tags in registry response from %s", source.url)
            return None

        latest = dist_tags.get("latest")
        if not isinstance(latest, str) or parse_version(latest) is None:
            logger.warning("No valid latest version tag in registry response from %s", source.url)
            return None
        return latest

    def _latest_from_local(self, path: Path) -> str | None:
        manifest = self._read_local_manifest(path)
        if manifest is None:
            return None
        return manifest.version

    def _read_local_manifest(self, path: Path) -> KitManifest | None:
        try:
            manifest = load_manifest(path)
        except ManifestMissingError as e:
            logger.warning("Failed to read version from %s: %s", path, e)
            return None

        if manifest is None:
            logger.warning("No kit.toml in local source %s", path)
            return None

        if manifest.name != self._ctx.config.kit_name:
            logger.warning(
                "Invalid kit source: %s has name '%s' (expected '%s')",
                path,
                manifest.name,
                self._ctx.config.kit_name,
            )
            return None

        if parse_version(manifest.version) is None:
            logger.warning("Invalid version '%s' in %s", manifest.version, path)
            return None
        return manifest
