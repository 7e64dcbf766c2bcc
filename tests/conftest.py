"""Shared fixtures for booking tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from carenest.config import Settings
from carenest.core.booking.clock import FixedClock
from carenest.core.booking.models import (
    PaymentStatus,
    Session,
    SessionStatus,
)

# Monday 2025-01-06, 08:00 UTC
MONDAY_MORNING = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)

PATIENT_ID = "patient-1"
THERAPIST_ID = "therapist-1"


@pytest.fixture
def settings():
    """Settings with defaults only (no .env)."""
    return Settings(_env_file=None)


@pytest.fixture
def clock():
    """Clock pinned to Monday morning."""
    return FixedClock(MONDAY_MORNING)


@pytest.fixture
def make_session():
    """Factory for sessions with sensible defaults."""

    def _make(**overrides) -> Session:
        data = {
            "id": "session-1",
            "patient_id": PATIENT_ID,
            "therapist_id": THERAPIST_ID,
            "scheduled_at": datetime(2025, 1, 7, 10, 0, tzinfo=timezone.utc),
            "duration": 60,
            "session_fee": Decimal("0"),
            "status": SessionStatus.PENDING,
            "payment_status": PaymentStatus.PENDING,
        }
        data.update(overrides)
        return Session(**data)

    return _make
