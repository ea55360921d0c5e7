"""Abstract base class for remote kit registry operations.

The registry serves an npm-style package document:

    {"name": "refit-kit",
     "dist-tags": {"latest": "1.2.0"},
     "versions": {"1.2.0": {"dist": {"tarball": "https://.../refit-kit-1.2.0.tgz"}}}}

Tarballs contain a single top-level directory (conventionally `package/`)
holding the asset tree.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from refit.versioning.models import SourceAvailability


class RegistryClient(ABC):
    """Abstract interface for talking to the remote registry.

    Two implementations:
    - RealRegistryClient: Production - urllib with explicit timeouts
    - FakeRegistryClient: Testing - in-memory document, local trees
    """

    @abstractmethod
    def fetch_package_document(self, url: str, *, timeout: float) -> dict | None:
        """Fetch and parse the package document.

        Returns:
            Parsed document, or None on any network, HTTP or parse failure.
            Never raises for network failures.
        """
        ...

    @abstractmethod
    def ping(self, url: str, *, timeout: float) -> SourceAvailability:
        """Cheap reachability check of the registry.

        Returns:
            SourceAvailability with a human-readable reason when unavailable
        """
        ...

    @abstractmethod
    def download_tree(self, tarball_url: str, dest_dir: Path, *, timeout: float) -> Path:
        """Download and unpack a release tarball into dest_dir.

        Returns:
            Path to the unpacked asset tree root

        Raises:
            SourceUnavailableError: If the download or extraction fails
        """
        ...
