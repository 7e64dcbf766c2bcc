"""
Booking Service - Main Orchestrator.

Coordinates availability, the calendar gate, the negotiator, payment and
the state machine with the REST API. Every transition is validated locally
against the authoritative session before the remote call is made, and the
server's copy is returned.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from carenest.config import Settings, get_settings
from carenest.core.booking.availability import AvailabilityResolver
from carenest.core.booking.calendar_gate import CalendarGate
from carenest.core.booking.clock import Clock, SystemClock
from carenest.core.booking.eligibility import SessionActions, available_actions
from carenest.core.booking.errors import PaymentDeclinedError, SlotUnavailableError
from carenest.core.booking.models import Actor, Session, SessionRequest, Therapist
from carenest.core.booking.negotiator import BookingNegotiator
from carenest.core.booking.state_machine import SessionStateMachine
from carenest.infra.payments import PaymentGateway, PaymentReceipt, get_payment_gateway
from carenest.infra.session_api import SessionApiClient, SessionFilter, get_session_api

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    """Result of a completed booking."""

    session: Session
    receipt: PaymentReceipt

    @property
    def is_free_trial(self) -> bool:
        return self.session.is_free_trial

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "session": self.session.to_dict(),
            "receipt": self.receipt.model_dump(mode="json"),
            "is_free_trial": self.is_free_trial,
        }


class BookingService:
    """
    Main orchestrator for session booking and lifecycle.

    Coordinates:
    - Availability resolution and calendar gating
    - Booking negotiation and payment
    - Session transitions through the state machine
    """

    def __init__(
        self,
        api: Optional[SessionApiClient] = None,
        payments: Optional[PaymentGateway] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize service with optional dependencies.

        Args:
            api: REST API client
            payments: Payment gateway
            clock: Source of "now" for every guard
            settings: Application settings
        """
        self._api = api
        self._payments = payments
        self._settings = settings or get_settings()
        self._clock = clock or SystemClock()

        self.resolver = AvailabilityResolver(self._settings)
        self.gate = CalendarGate(self._clock, self.resolver, self._settings)
        self.negotiator = BookingNegotiator(self._settings)
        self.state_machine = SessionStateMachine(self._clock, self._settings)

    def _get_api(self) -> SessionApiClient:
        """Get API client."""
        if self._api is None:
            self._api = get_session_api()
        return self._api

    def _get_payments(self) -> PaymentGateway:
        """Get payment gateway."""
        if self._payments is None:
            self._payments = get_payment_gateway()
        return self._payments

    async def _therapist_sessions(self, therapist_id: str) -> list[Session]:
        return await self._get_api().list_sessions(SessionFilter(therapist_id=therapist_id))

    # === Availability ===

    async def get_bookable_dates(
        self,
        therapist_id: str,
        start: Optional[date] = None,
        days: Optional[int] = None,
    ) -> list[date]:
        """Dates a patient can be offered for a therapist.

        Args:
            therapist_id: Therapist identifier
            start: First date of the window (default today)
            days: Window length (default from settings)

        Returns:
            Ordered list of offerable dates
        """
        api = self._get_api()
        availability = await api.get_therapist_availability(therapist_id)

        blocked: set[date] = set()
        if self._settings.blocking_mode == "date":
            sessions = await self._therapist_sessions(therapist_id)
            blocked = self.gate.blocked_dates(sessions, therapist_id)

        return self.gate.bookable_dates(availability, blocked, start=start, days=days)

    async def get_available_slots(
        self,
        therapist_id: str,
        day: date,
        duration: Optional[int] = None,
    ) -> list[time]:
        """Slots a patient can pick on ``day``.

        Date mode returns every upcoming slot of an offerable date; slot
        mode also drops the slots overlapping open sessions.
        """
        api = self._get_api()
        availability = await api.get_therapist_availability(therapist_id)
        sessions = await self._therapist_sessions(therapist_id)

        if self._settings.blocking_mode == "slot":
            return self.gate.open_slots(
                day, availability, sessions, therapist_id, duration
            )

        blocked = self.gate.blocked_dates(sessions, therapist_id)
        if not self.gate.is_date_available(day, availability, blocked):
            return []
        return self.gate.upcoming_slots(day, availability)

    # === Booking ===

    async def prepare_booking(
        self,
        patient_id: str,
        therapist: Optional[Therapist],
        day: Optional[date],
        slot: Optional[time],
        duration: Optional[int] = None,
    ) -> SessionRequest:
        """Validate a selection and price it using the patient's history."""
        history: list[Session] = []
        if therapist is not None:
            history = await self._get_api().list_sessions(
                SessionFilter(patient_id=patient_id, therapist_id=therapist.id)
            )
        return self.negotiator.build_request(
            patient_id=patient_id,
            therapist=therapist,
            day=day,
            slot=slot,
            duration=duration,
            history=history,
        )

    async def book_session(
        self,
        patient_id: str,
        therapist: Optional[Therapist],
        day: Optional[date],
        slot: Optional[time],
        duration: Optional[int] = None,
    ) -> BookingResult:
        """Negotiate, confirm payment and create a pending session.

        Raises:
            MissingSelectionError, TherapistUnresolvedError,
            InvalidDurationError: Invalid selection
            SlotUnavailableError: Slot is no longer offered
            PaymentDeclinedError: Payment was not confirmed
        """
        request = await self.prepare_booking(patient_id, therapist, day, slot, duration)

        offered = await self.get_available_slots(therapist.id, day, request.duration)
        if slot not in offered:
            raise SlotUnavailableError(
                f"{day.isoformat()} {slot.strftime('%H:%M')} is no longer available"
            )

        receipt = await self._get_payments().confirm_payment(request)
        if not receipt.confirmed:
            raise PaymentDeclinedError(
                f"Payment was not confirmed for patient {patient_id}"
            )

        session = await self._get_api().create_session(request)
        logger.info(
            f"Booked session {session.id} for patient {patient_id} "
            f"(fee={request.session_fee}, free_trial={request.is_free_trial})"
        )
        return BookingResult(session=session, receipt=receipt)

    # === Transitions ===

    async def accept_session(
        self,
        session_id: str,
        actor: Actor,
        meeting_link: str,
        notes: Optional[str] = None,
    ) -> Session:
        api = self._get_api()
        session = await api.get_session(session_id)
        accepted = self.state_machine.accept(session, actor, meeting_link, notes)
        return await api.accept_session(session_id, accepted.meeting_link, accepted.therapist_notes)

    async def reject_session(
        self,
        session_id: str,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Session:
        api = self._get_api()
        session = await api.get_session(session_id)
        rejected = self.state_machine.reject(session, actor, reason)
        return await api.reject_session(session_id, rejected.cancellation_reason)

    async def cancel_session(self, session_id: str, actor: Actor, reason: str) -> Session:
        api = self._get_api()
        session = await api.get_session(session_id)
        cancelled = self.state_machine.cancel(session, actor, reason)
        return await api.cancel_session(session_id, cancelled.cancellation_reason)

    async def complete_session(self, session_id: str, actor: Actor) -> Session:
        api = self._get_api()
        session = await api.get_session(session_id)
        self.state_machine.complete(session, actor)
        return await api.complete_session(session_id)

    async def mark_no_show(self, session_id: str, actor: Actor) -> Session:
        api = self._get_api()
        session = await api.get_session(session_id)
        self.state_machine.mark_no_show(session, actor)
        return await api.mark_no_show(session_id)

    async def update_notes(self, session_id: str, actor: Actor, notes: Optional[str]) -> Session:
        api = self._get_api()
        session = await api.get_session(session_id)
        updated = self.state_machine.update_notes(session, actor, notes)
        return await api.update_session_notes(session_id, updated.therapist_notes)

    def actions_for(self, session: Session, actor: Actor) -> SessionActions:
        """Controls to enable for ``actor`` right now."""
        return available_actions(session, actor, self._clock.now(), self._settings)


# Singleton
_service: Optional[BookingService] = None


def get_booking_service() -> BookingService:
    """Get singleton BookingService."""
    global _service
    if _service is None:
        _service = BookingService()
    return _service
