"""Production Time implementation backed by the system clock."""

from datetime import UTC, datetime

from refit.gateway.time.abc import Time


class RealTime(Time):
    def now(self) -> datetime:
        return datetime.now(UTC)
