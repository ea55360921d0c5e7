"""Abstract base class for clock operations.

Backup identifiers and lock timestamps are derived from the clock, so tests
inject FakeTime instead of depending on the wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract interface for time operations."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...
