"""
Booking negotiator.

Builds the session creation request for a patient's chosen date and slot,
including the free-trial fee rule.
"""

import logging
from datetime import date, time
from decimal import Decimal
from typing import Iterable, Optional

from carenest.config import Settings, get_settings
from carenest.core.booking.availability import slot_datetime
from carenest.core.booking.errors import (
    InvalidDurationError,
    MissingSelectionError,
    TherapistUnresolvedError,
)
from carenest.core.booking.models import (
    Session,
    SessionRequest,
    SessionStatus,
    Therapist,
    sessions_between,
)

logger = logging.getLogger(__name__)

# Statuses that consume the free trial for a patient/therapist pair
TRIAL_CONSUMING_STATUSES = frozenset({
    SessionStatus.CONFIRMED,
    SessionStatus.COMPLETED,
})


class BookingNegotiator:
    """Validates a booking selection and prices it."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def is_free_trial(
        self,
        patient_id: str,
        therapist_id: str,
        history: Iterable[Session],
    ) -> bool:
        """A booking is free until one session with the therapist was accepted."""
        return not any(
            s.status in TRIAL_CONSUMING_STATUSES
            for s in sessions_between(history, patient_id, therapist_id)
        )

    def resolve_fee(
        self,
        patient_id: str,
        therapist: Therapist,
        history: Iterable[Session],
    ) -> Decimal:
        if self.is_free_trial(patient_id, therapist.id, history):
            return Decimal("0")
        return therapist.session_rate

    def validate_duration(self, duration: int) -> int:
        if duration not in self._settings.allowed_durations:
            raise InvalidDurationError(duration, self._settings.allowed_durations)
        return duration

    def build_request(
        self,
        patient_id: str,
        therapist: Optional[Therapist],
        day: Optional[date],
        slot: Optional[time],
        duration: Optional[int] = None,
        history: Iterable[Session] = (),
    ) -> SessionRequest:
        """Build a session creation request.

        Args:
            patient_id: Patient booking the session
            therapist: Loaded therapist record
            day: Chosen calendar date
            slot: Chosen start time
            duration: Length in minutes (default from settings)
            history: Patient's prior sessions

        Returns:
            SessionRequest ready for payment and creation

        Raises:
            MissingSelectionError: No date or slot selected
            TherapistUnresolvedError: Therapist record not loaded
            InvalidDurationError: Duration not offered
        """
        if day is None or slot is None:
            raise MissingSelectionError("Please select a date and time slot")
        if therapist is None or not therapist.id:
            raise TherapistUnresolvedError("Therapist information is not loaded")

        duration = self.validate_duration(
            self._settings.default_duration if duration is None else duration
        )
        fee = self.resolve_fee(patient_id, therapist, list(history))

        request = SessionRequest(
            patient_id=patient_id,
            therapist_id=therapist.id,
            scheduled_at=slot_datetime(day, slot, self._settings.tzinfo),
            duration=duration,
            session_fee=fee,
        )
        logger.debug(
            f"Built session request for patient {patient_id} with therapist "
            f"{therapist.id} at {request.scheduled_at.isoformat()} "
            f"(free_trial={request.is_free_trial})"
        )
        return request
