"""
Clock abstraction.

"Now" is always injected so past-date checks, next-hearing derivation and
override timestamps are deterministic under test. All values are timezone-aware
UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC (that is how they are stored).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an instant to the naive-UTC form used by DateTime columns."""
    if value is None:
        return None
    return as_utc(value).replace(tzinfo=None)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing Z, e.g. 2025-06-01T04:30:00Z"""
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


class Clock:
    """Source of the current instant."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return utc_now()


class FixedClock(Clock):
    """Clock pinned to one instant (tests, backfills, replays)."""

    def __init__(self, instant: datetime):
        self._instant = as_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = as_utc(instant)


_default_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency / default clock (override in tests)."""
    return _default_clock
