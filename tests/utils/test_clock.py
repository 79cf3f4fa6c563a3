"""Tests for time helpers."""

from datetime import datetime, timedelta, timezone

from thundercloud.utils.clock import FrozenClock, utcnow


def test_utcnow_is_naive():
    now = utcnow()
    assert now.tzinfo is None
    assert abs(now - datetime.now(timezone.utc).replace(tzinfo=None)) < timedelta(seconds=5)


def test_frozen_clock_advances():
    clock = FrozenClock(datetime(2024, 7, 1, 12, 0))
    assert clock() == datetime(2024, 7, 1, 12, 0)

    clock.advance(minutes=6)
    assert clock() == datetime(2024, 7, 1, 12, 6)
