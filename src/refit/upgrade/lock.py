"""Advisory lock preventing two upgrades of the same project at once.

The lock file holds JSON: {"pid": 1234, "timestamp": "2024-01-15T12:00:00+00:00"}.
A lock whose pid is no longer running is stale and gets replaced.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from refit.core.errors import LockHeldError
from refit.gateway.time.abc import Time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    pid: int
    timestamp: str


def pid_is_alive(pid: int) -> bool:
    """Check if a process with this pid exists (signal 0)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


def read_lock(lock_path: Path) -> LockInfo | None:
    """Read lock info, returning None if the file is missing or unreadable."""
    if not lock_path.exists():
        return None
    try:
        data = json.loads(lock_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    pid = data.get("pid")
    timestamp = data.get("timestamp")
    if isinstance(pid, bool) or not isinstance(pid, int) or not isinstance(timestamp, str):
        return None
    return LockInfo(pid=pid, timestamp=timestamp)


class UpgradeLock:
    """Context manager holding `.refit/upgrade.lock` for the duration of a run."""

    def __init__(self, lock_path: Path, time: Time) -> None:
        self._lock_path = lock_path
        self._time = time
        self._pid = os.getpid()
        self._held = False

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            LockHeldError: If another live process holds it
        """
        existing = read_lock(self._lock_path)
        if existing is not None and existing.pid != self._pid and pid_is_alive(existing.pid):
            raise LockHeldError(
                f"Another upgrade is running (pid {existing.pid}, since {existing.timestamp}). "
                f"If that is not the case, delete {self._lock_path}"
            )
        if self._lock_path.exists():
            logger.warning("Replacing stale upgrade lock %s", self._lock_path)
            self._lock_path.unlink()

        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"pid": self._pid, "timestamp": self._time.now().isoformat()}
        try:
            with open(self._lock_path, "x", encoding="utf-8") as f:
                json.dump(payload, f)
        except FileExistsError as e:
            raise LockHeldError(f"Another upgrade acquired {self._lock_path} first") from e
        self._held = True
        logger.debug("Acquired upgrade lock %s", self._lock_path)

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        existing = read_lock(self._lock_path)
        if existing is not None and existing.pid == self._pid:
            self._lock_path.unlink()
            logger.debug("Released upgrade lock %s", self._lock_path)

    def __enter__(self) -> "UpgradeLock":
        self.acquire()
        return self

    def __exit__(self, exc_type: object, exc_value: object, traceback: object) -> None:
        self.release()
