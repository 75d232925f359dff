# tests/unit/engine/test_clock.py
"""Tests for the Clock abstraction (SystemClock, MockClock, DEFAULT_CLOCK).

The clock drives the $now and $today expression built-ins. SystemClock
reads UTC wall time; MockClock allows programmatic time control.
"""

from datetime import UTC, datetime

import pytest


class TestClockProtocol:
    def test_system_clock_returns_aware_utc(self) -> None:
        from nodeflow.engine.clock import SystemClock

        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset().total_seconds() == 0  # type: ignore[union-attr]

    def test_default_clock_is_system_clock(self) -> None:
        from nodeflow.engine.clock import DEFAULT_CLOCK, SystemClock

        assert isinstance(DEFAULT_CLOCK, SystemClock)


class TestMockClock:
    def test_default_start(self) -> None:
        from nodeflow.engine.clock import MockClock

        assert MockClock().now() == datetime(2024, 1, 1, tzinfo=UTC)

    def test_naive_start_is_taken_as_utc(self) -> None:
        from nodeflow.engine.clock import MockClock

        assert MockClock(datetime(2024, 5, 1, 12, 0)).now() == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def test_advance(self) -> None:
        from nodeflow.engine.clock import MockClock

        clock = MockClock()
        clock.advance(90)
        assert clock.now() == datetime(2024, 1, 1, 0, 1, 30, tzinfo=UTC)

    def test_advance_negative_raises(self) -> None:
        from nodeflow.engine.clock import MockClock

        clock = MockClock()
        with pytest.raises(ValueError, match="negative"):
            clock.advance(-1)

    def test_set_allows_going_back(self) -> None:
        from nodeflow.engine.clock import MockClock

        clock = MockClock(datetime(2025, 1, 1, tzinfo=UTC))
        clock.set(datetime(2020, 1, 1, tzinfo=UTC))
        assert clock.now().year == 2020
