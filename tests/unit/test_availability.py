"""Tests for the availability resolver."""

from datetime import date, time

import pytest

from carenest.config import Settings
from carenest.core.booking.availability import (
    AvailabilityResolver,
    format_slot,
    weekday_name,
)
from carenest.core.booking.models import Availability

MONDAY = date(2025, 1, 6)
TUESDAY = date(2025, 1, 7)
SATURDAY = date(2025, 1, 11)
SUNDAY = date(2025, 1, 12)


class TestAvailabilityResolver:
    """Test AvailabilityResolver."""

    @pytest.fixture
    def resolver(self, settings):
        return AvailabilityResolver(settings)

    def test_weekday_name(self):
        assert weekday_name(MONDAY) == "monday"
        assert weekday_name(SUNDAY) == "sunday"

    @pytest.mark.parametrize("offset", range(5))
    def test_weekday_default_hours(self, resolver, offset):
        """Monday-Friday without entries get 09:00-17:00."""
        day = date(2025, 1, 6 + offset)

        slots = resolver.resolve_slot_labels(day, Availability())

        assert slots == [
            "09:00", "10:00", "11:00", "12:00",
            "13:00", "14:00", "15:00", "16:00",
        ]

    @pytest.mark.parametrize("day", [SATURDAY, SUNDAY])
    def test_weekend_has_no_default(self, resolver, day):
        assert resolver.resolve_slots(day, Availability()) == []
        assert resolver.has_availability(day, Availability()) is False

    def test_explicit_ranges_replace_default(self, resolver):
        availability = Availability.from_dict({
            "tuesday": [{"start": "13:00", "end": "15:00"}],
        })

        assert resolver.resolve_slots(TUESDAY, availability) == [time(13), time(14)]
        # Other weekdays still fall back to the default
        assert len(resolver.resolve_slots(MONDAY, availability)) == 8

    def test_weekend_explicit_ranges(self, resolver):
        availability = Availability.from_dict({
            "saturday": [{"startTime": "10:00", "endTime": "12:00"}],
        })

        assert resolver.resolve_slot_labels(SATURDAY, availability) == ["10:00", "11:00"]

    def test_multiple_ranges_ordered_and_deduplicated(self, resolver):
        availability = Availability.from_dict({
            "monday": [
                {"start": "14:00", "end": "16:00"},
                {"start": "09:00", "end": "11:00"},
                {"start": "10:00", "end": "12:00"},
            ],
        })

        assert resolver.resolve_slot_labels(MONDAY, availability) == [
            "09:00", "10:00", "11:00", "14:00", "15:00",
        ]

    def test_partial_hours_are_truncated(self, resolver):
        """Ranges are quantized to whole hours."""
        availability = Availability.from_dict({
            "monday": [{"start": "09:30", "end": "11:15"}],
        })

        assert resolver.resolve_slot_labels(MONDAY, availability) == ["09:00", "10:00"]

    def test_sub_hour_range_collapses(self, resolver):
        availability = Availability.from_dict({
            "saturday": [{"start": "10:15", "end": "10:45"}],
        })

        assert resolver.resolve_slots(SATURDAY, availability) == []

    def test_configured_default_hours(self):
        resolver = AvailabilityResolver(
            Settings(_env_file=None, default_day_start="08:00", default_day_end="10:00")
        )

        assert resolver.resolve_slot_labels(MONDAY, Availability()) == ["08:00", "09:00"]

    def test_resolution_is_idempotent(self, resolver):
        availability = Availability.from_dict({"monday": ["09:00-12:00"]})

        first = resolver.resolve_slots(MONDAY, availability)
        second = resolver.resolve_slots(MONDAY, availability)

        assert first == second == [time(9), time(10), time(11)]

    def test_format_slot(self):
        assert format_slot(time(9, 0)) == "09:00"
