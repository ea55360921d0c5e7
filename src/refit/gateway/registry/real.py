"""Real RegistryClient implementation over HTTPS using urllib."""

import json
import logging
import shutil
import tarfile
import urllib.error
import urllib.request
from pathlib import Path

from refit.core.errors import SourceUnavailableError
from refit.gateway.registry.abc import RegistryClient
from refit.versioning.models import SourceAvailability

logger = logging.getLogger(__name__)

_TARBALL_FILENAME = "release.tgz"


def _registry_root(url: str) -> str:
    """Return scheme://host/ for a package document URL."""
    scheme, _, rest = url.partition("://")
    host = rest.split("/", 1)[0]
    return f"{scheme}://{host}/"


class RealRegistryClient(RegistryClient):
    """Production implementation. Every request carries an explicit timeout."""

    def fetch_package_document(self, url: str, *, timeout: float) -> dict | None:
        request = urllib.request.Request(url, headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            if e.code == 404:
                logger.warning("Package not found in registry: %s", url)
            else:
                logger.warning("Registry error %s for %s", e.code, url)
            return None
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            logger.warning("Failed to reach registry %s: %s", url, e)
            return None

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.warning("Registry returned invalid JSON from %s: %s", url, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Registry document from %s is not an object", url)
            return None
        return data

    def ping(self, url: str, *, timeout: float) -> SourceAvailability:
        request = urllib.request.Request(_registry_root(url), method="HEAD")
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                status = response.status
        except urllib.error.HTTPError as e:
            return SourceAvailability(available=False, reason=f"HTTP {e.code}: {e.reason}")
        except TimeoutError:
            return SourceAvailability(available=False, reason="Request timed out")
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                return SourceAvailability(available=False, reason="Request timed out")
            return SourceAvailability(available=False, reason=f"Network error: {e.reason}")
        except OSError as e:
            return SourceAvailability(available=False, reason=str(e))

        if 200 <= status < 400:
            return SourceAvailability(available=True, reason=None)
        return SourceAvailability(available=False, reason=f"HTTP {status}")

    def download_tree(self, tarball_url: str, dest_dir: Path, *, timeout: float) -> Path:
        dest_dir.mkdir(parents=True, exist_ok=True)
        archive_path = dest_dir / _TARBALL_FILENAME

        try:
            with urllib.request.urlopen(tarball_url, timeout=timeout) as response:
                with open(archive_path, "wb") as f:
                    shutil.copyfileobj(response, f)
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise SourceUnavailableError(f"Failed to download {tarball_url}: {e}") from e

        extract_dir = dest_dir / "extracted"
        try:
            with tarfile.open(archive_path, "r:gz") as archive:
                archive.extractall(extract_dir, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise SourceUnavailableError(f"Failed to unpack {tarball_url}: {e}") from e
        finally:
            archive_path.unlink(missing_ok=True)

        top_level = [entry for entry in extract_dir.iterdir() if entry.is_dir()]
        if len(top_level) != 1:
            raise SourceUnavailableError(
                f"Release archive {tarball_url} must contain exactly one top-level "
                f"directory, found {len(top_level)}"
            )
        logger.debug("Unpacked %s into %s", tarball_url, top_level[0])
        return top_level[0]
