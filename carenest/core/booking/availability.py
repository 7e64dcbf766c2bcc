"""
Availability resolver.

Turns a therapist's weekly availability into the concrete start times that
can be booked on one calendar date.
"""

from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional

from carenest.config import Settings, get_settings
from carenest.core.booking.models import WEEKDAYS, Availability, TimeRange

# Days that fall back to the default working range when nothing is set
DEFAULT_WORKDAYS = frozenset(WEEKDAYS[:5])


def weekday_name(day: date) -> str:
    """Lower-case English weekday name of a date."""
    return WEEKDAYS[day.weekday()]


def format_slot(slot: time) -> str:
    """Render a slot as "HH:MM"."""
    return slot.strftime("%H:%M")


class AvailabilityResolver:
    """
    Resolves bookable slots for a date.

    Slots are quantized to whole hours: a range contributes one slot per
    hour from the hour of its start up to, but excluding, the hour of its
    end. A 09:30-11:15 range therefore yields 09:00 and 10:00, and a range
    shorter than an hour inside a single hour yields nothing.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    @property
    def default_range(self) -> TimeRange:
        return TimeRange(
            start=self._settings.default_day_start,
            end=self._settings.default_day_end,
        )

    def effective_ranges(self, day: date, availability: Availability) -> tuple[TimeRange, ...]:
        """Explicit ranges for the weekday, or the default on Monday-Friday."""
        weekday = weekday_name(day)
        ranges = availability.ranges_for(weekday)
        if not ranges and weekday in DEFAULT_WORKDAYS:
            return (self.default_range,)
        return ranges

    def has_availability(self, day: date, availability: Availability) -> bool:
        """Check if the weekday of ``day`` has any working range."""
        return bool(self.effective_ranges(day, availability))

    def resolve_slots(self, day: date, availability: Availability) -> list[time]:
        """Ordered, de-duplicated start times bookable on ``day``.

        Args:
            day: Calendar date
            availability: Therapist availability snapshot

        Returns:
            List of slot start times, empty when the day has no ranges
        """
        hours: set[int] = set()
        for time_range in self.effective_ranges(day, availability):
            hours.update(range(time_range.start.hour, time_range.end.hour))
        return [time(hour, 0) for hour in sorted(hours)]

    def resolve_slot_labels(self, day: date, availability: Availability) -> list[str]:
        """Same as ``resolve_slots`` rendered as "HH:MM" strings."""
        return [format_slot(slot) for slot in self.resolve_slots(day, availability)]


def slot_datetime(day: date, slot: time, tz: tzinfo) -> datetime:
    """Absolute UTC start of ``slot`` on ``day`` in the booking zone."""
    return datetime.combine(day, slot, tzinfo=tz).astimezone(timezone.utc)
