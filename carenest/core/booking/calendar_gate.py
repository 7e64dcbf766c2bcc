"""
Calendar gate.

Decides which calendar dates (and, in slot mode, which start times) can be
offered to a patient for a therapist.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import AbstractSet, Iterable, Optional

from carenest.config import Settings, get_settings
from carenest.core.booking.availability import AvailabilityResolver, slot_datetime
from carenest.core.booking.clock import Clock, SystemClock
from carenest.core.booking.models import Availability, Session

logger = logging.getLogger(__name__)


class CalendarGate:
    """
    Date- and slot-level offer rules.

    A date is offerable when it is not before today, its weekday has
    availability, and it is not blocked. Blocking is per calendar date: one
    open session with the therapist on a day hides the whole day. Slot
    mode (``open_slots``) hides only the start times that would overlap an
    open session.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        resolver: Optional[AvailabilityResolver] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._clock = clock or SystemClock()
        self._resolver = resolver or AvailabilityResolver(self._settings)

    def today(self) -> date:
        """Current date in the booking timezone."""
        return self._clock.now().astimezone(self._settings.tzinfo).date()

    def local_date(self, instant: datetime) -> date:
        """Calendar date of an instant in the booking timezone."""
        return instant.astimezone(self._settings.tzinfo).date()

    def blocked_dates(self, sessions: Iterable[Session], therapist_id: str) -> set[date]:
        """Dates holding a pending or confirmed session with the therapist."""
        return {
            self.local_date(s.scheduled_at)
            for s in sessions
            if s.therapist_id == therapist_id and s.status.is_open
        }

    def is_date_available(
        self,
        day: date,
        availability: Availability,
        blocked_dates: AbstractSet[date] = frozenset(),
    ) -> bool:
        """Check whether ``day`` can be offered at all.

        Args:
            day: Calendar date to check
            availability: Therapist availability snapshot
            blocked_dates: Dates already holding an open session

        Returns:
            True if the date is today or later, has working hours and is
            not blocked
        """
        if day < self.today():
            return False
        if not self._resolver.has_availability(day, availability):
            return False
        return day not in blocked_dates

    def bookable_dates(
        self,
        availability: Availability,
        blocked_dates: AbstractSet[date] = frozenset(),
        start: Optional[date] = None,
        days: Optional[int] = None,
    ) -> list[date]:
        """Offerable dates in a window starting at ``start`` (default today)."""
        start = start or self.today()
        days = self._settings.booking_horizon_days if days is None else days
        candidates = (start + timedelta(days=offset) for offset in range(days))
        return [
            day for day in candidates
            if self.is_date_available(day, availability, blocked_dates)
        ]

    def upcoming_slots(self, day: date, availability: Availability) -> list[time]:
        """Resolved slots on ``day`` that have not started yet."""
        if day < self.today():
            return []
        now = self._clock.now()
        return [
            slot for slot in self._resolver.resolve_slots(day, availability)
            if slot_datetime(day, slot, self._settings.tzinfo) >= now
        ]

    def open_slots(
        self,
        day: date,
        availability: Availability,
        sessions: Iterable[Session],
        therapist_id: str,
        duration: Optional[int] = None,
    ) -> list[time]:
        """Slots on ``day`` that start in the future and overlap no open session.

        Args:
            day: Calendar date
            availability: Therapist availability snapshot
            sessions: Known sessions (any therapist; filtered here)
            therapist_id: Therapist being booked
            duration: Requested length in minutes (default from settings)

        Returns:
            Ordered list of free slot start times
        """
        duration = duration or self._settings.default_duration
        busy = [
            s for s in sessions
            if s.therapist_id == therapist_id and s.status.is_open
        ]

        free = []
        for slot in self.upcoming_slots(day, availability):
            start = slot_datetime(day, slot, self._settings.tzinfo)
            end = start + timedelta(minutes=duration)
            if any(s.overlaps(start, end) for s in busy):
                logger.debug(f"Slot {day} {slot} overlaps an open session")
                continue
            free.append(slot)
        return free
