"""Clock sources for time-dependent booking rules.

Every guard and eligibility check reads "now" from a Clock passed in by the
caller, so tests can move time explicitly.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Clock(Protocol):
    """Anything that can report the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock, reported in UTC."""

    def now(self) -> datetime:
        return _utcnow()


class FixedClock:
    """Clock pinned to an instant that only moves when told to."""

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        """Jump to an absolute instant."""
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current

    def advance(self, **delta) -> datetime:
        """Move forward by a timedelta given as keyword arguments."""
        self._current = self._current + timedelta(**delta)
        return self._current
