"""Naive UTC time helpers.

Everything stored or compared in thundercloud is a naive UTC datetime.
Components that care about time accept a ``clock`` callable so tests can
control it.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FrozenClock:
    """Manually advanced clock.

    Example:
        >>> clock = FrozenClock(datetime(2024, 7, 1, 12, 0))
        >>> clock.advance(minutes=6)
        >>> clock()
        datetime.datetime(2024, 7, 1, 12, 6)
    """

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)
