"""Fake RegistryClient implementation for testing.

Serves a package document built from a mapping of version -> local tree
directory, and "downloads" by copying those trees.
"""

import shutil
from pathlib import Path

from refit.core.errors import SourceUnavailableError
from refit.gateway.registry.abc import RegistryClient
from refit.versioning.models import SourceAvailability

_FAKE_TARBALL_PREFIX = "fake-registry://"


class FakeRegistryClient(RegistryClient):
    """In-memory registry.

    This class has NO public setup methods beyond constructor.
    All state is provided via constructor or captured during execution.
    """

    def __init__(
        self,
        *,
        trees: dict[str, Path] | None = None,
        latest: str | None = None,
        available: bool = True,
        unavailable_reason: str = "Request timed out",
        download_fails: bool = False,
        name: str = "refit-kit",
    ) -> None:
        """Create FakeRegistryClient.

        Args:
            trees: Published versions mapped to local asset tree directories
            latest: Version reported under dist-tags.latest (None = no tag)
            available: False simulates an unreachable registry (timeouts)
            unavailable_reason: Reason reported by ping() when unavailable
            download_fails: True makes download_tree() raise
            name: Package name reported in the document
        """
        self._trees = dict(trees or {})
        self._latest = latest
        self._available = available
        self._unavailable_reason = unavailable_reason
        self._download_fails = download_fails
        self._name = name
        self._requested_timeouts: list[float] = []
        self._downloads: list[str] = []

    # --- Test assertions ---

    @property
    def requested_timeouts(self) -> list[float]:
        """Timeouts passed to every network call.

        This property is for test assertions only.
        """
        return list(self._requested_timeouts)

    @property
    def downloads(self) -> list[str]:
        """Tarball URLs passed to download_tree().

        This property is for test assertions only.
        """
        return list(self._downloads)

    # --- RegistryClient ---

    def fetch_package_document(self, url: str, *, timeout: float) -> dict | None:
        self._requested_timeouts.append(timeout)
        if not self._available:
            return None
        versions = {
            version: {"dist": {"tarball": f"{_FAKE_TARBALL_PREFIX}{version}"}}
            for version in self._trees
        }
        document: dict = {"name": self._name, "versions": versions, "dist-tags": {}}
        if self._latest is not None:
            document["dist-tags"]["latest"] = self._latest
        return document

    def ping(self, url: str, *, timeout: float) -> SourceAvailability:
        self._requested_timeouts.append(timeout)
        if not self._available:
            return SourceAvailability(available=False, reason=self._unavailable_reason)
        return SourceAvailability(available=True, reason=None)

    def download_tree(self, tarball_url: str, dest_dir: Path, *, timeout: float) -> Path:
        self._requested_timeouts.append(timeout)
        self._downloads.append(tarball_url)
        if not self._available or self._download_fails:
            raise SourceUnavailableError(f"Failed to download {tarball_url}: simulated failure")
        version = tarball_url.removeprefix(_FAKE_TARBALL_PREFIX)
        if version not in self._trees:
            raise SourceUnavailableError(f"Failed to download {tarball_url}: not published")
        target = dest_dir / "package"
        shutil.copytree(self._trees[version], target)
        return target
