"""Clock abstraction for the time-dependent expression built-ins.

``$now`` and ``$today`` read the clock carried by the data context.
Production code uses SystemClock (the default). Tests inject MockClock to
make those built-ins deterministic.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Abstract wall clock."""

    def now(self) -> datetime:
        """Return the current instant as a timezone-aware datetime.

        Called on every resolution; implementations must not cache.
        """
        ...


class SystemClock:
    """Production clock reading the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(datetime(2024, 1, 15, 9, 30, tzinfo=UTC))
        context = DataContext(clock=clock)

        resolve("{{ $now }}", context)  # "2024-01-15T09:30:00+00:00"
        clock.advance(60)
        resolve("{{ $now }}", context)  # "2024-01-15T09:31:00+00:00"
    """

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize mock clock at a given instant.

        Args:
            start: Initial instant (default 2024-01-01T00:00:00Z). Naive
                datetimes are taken as UTC.
        """
        start = start or datetime(2024, 1, 1, tzinfo=UTC)
        self._current = start if start.tzinfo is not None else start.replace(tzinfo=UTC)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += timedelta(seconds=seconds)

    def set(self, value: datetime) -> None:
        """Set mock time to an absolute instant, earlier times included."""
        self._current = value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
