"""
Wall-clock access for the contest lifecycle.

All timestamps are naive UTC, the same representation Mongo hands back.
"""
from datetime import datetime, timedelta, timezone


class SystemClock:
    """Real time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class ManualClock:
    """
    Clock that only moves when told to.

    Used to simulate weeks passing without waiting for them.
    """

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now


# Process-wide clock
clock = SystemClock()


def get_clock():
    """Clock dependency"""
    return clock
