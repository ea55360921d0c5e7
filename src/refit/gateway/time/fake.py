"""Fake Time implementation for testing."""

from datetime import UTC, datetime, timedelta

from refit.gateway.time.abc import Time


class FakeTime(Time):
    """In-memory clock with a controllable starting point.

    Every call to now() advances the clock by `tick` so that consecutive
    timestamp-derived identifiers stay unique.
    """

    def __init__(
        self,
        *,
        current: datetime | None = None,
        tick: timedelta = timedelta(seconds=1),
    ) -> None:
        if current is None:
            current = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
        self._current = current
        self._tick = tick

    def now(self) -> datetime:
        value = self._current
        self._current = self._current + self._tick
        return value
