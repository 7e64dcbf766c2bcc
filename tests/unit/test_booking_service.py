"""Tests for the Booking Service orchestrator."""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from itertools import count
from typing import Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from carenest.config import Settings
from carenest.core.booking.errors import (
    Guard,
    MissingSelectionError,
    PaymentDeclinedError,
    SlotUnavailableError,
    TransitionNotAllowed,
)
from carenest.core.booking.models import (
    Actor,
    Availability,
    Session,
    SessionRequest,
    SessionStatus,
    Therapist,
)
from carenest.core.booking.service import BookingResult, BookingService
from carenest.infra.payments import PaymentGateway, PaymentReceipt
from carenest.infra.session_api import SessionFilter

from tests.conftest import PATIENT_ID, THERAPIST_ID

TUESDAY = date(2025, 1, 7)
START = datetime(2025, 1, 7, 10, 0, tzinfo=timezone.utc)
LINK = "https://meet.example/abc"


class FakeSessionApi:
    """In-memory stand-in for the REST API."""

    def __init__(self, availability: Availability):
        self.availability = availability
        self.sessions: dict[str, Session] = {}
        self._ids = count(1)

    def add(self, session: Session) -> Session:
        self.sessions[session.id] = session
        return session

    async def get_therapist_availability(self, therapist_id: str) -> Availability:
        return self.availability

    async def list_sessions(self, session_filter: Optional[SessionFilter] = None) -> list[Session]:
        session_filter = session_filter or SessionFilter()
        return [
            s for s in self.sessions.values()
            if (not session_filter.patient_id or s.patient_id == session_filter.patient_id)
            and (not session_filter.therapist_id or s.therapist_id == session_filter.therapist_id)
        ]

    async def get_session(self, session_id: str) -> Session:
        return self.sessions[session_id]

    async def create_session(self, request: SessionRequest) -> Session:
        return self.add(Session(
            id=f"s-{next(self._ids)}",
            patient_id=request.patient_id,
            therapist_id=request.therapist_id,
            scheduled_at=request.scheduled_at,
            duration=request.duration,
            session_fee=request.session_fee,
        ))

    async def accept_session(self, session_id, meeting_link, notes=None) -> Session:
        return self.add(self.sessions[session_id].evolve(
            status=SessionStatus.CONFIRMED,
            meeting_link=meeting_link,
            therapist_notes=notes,
        ))

    async def reject_session(self, session_id, reason=None) -> Session:
        return self.add(self.sessions[session_id].evolve(
            status=SessionStatus.REJECTED,
            cancellation_reason=reason,
        ))

    async def cancel_session(self, session_id, reason) -> Session:
        return self.add(self.sessions[session_id].evolve(
            status=SessionStatus.CANCELLED,
            cancellation_reason=reason,
        ))

    async def complete_session(self, session_id) -> Session:
        return self.add(self.sessions[session_id].evolve(status=SessionStatus.COMPLETED))

    async def mark_no_show(self, session_id) -> Session:
        return self.add(self.sessions[session_id].evolve(status=SessionStatus.NO_SHOW))

    async def update_session_notes(self, session_id, notes) -> Session:
        return self.add(self.sessions[session_id].evolve(therapist_notes=notes))


@pytest.fixture
def therapist():
    return Therapist(id=THERAPIST_ID, name="Dr. Rivera", session_rate=Decimal("80"))


@pytest.fixture
def api():
    # No tuesday entry: the weekday default applies
    return FakeSessionApi(Availability.from_dict({"saturday": ["10:00-12:00"]}))


@pytest.fixture
def service(api, clock, settings):
    return BookingService(
        api=api,
        payments=PaymentGateway(),
        clock=clock,
        settings=settings,
    )


class TestBookingScenario:
    """Walk a session from slot selection to completion."""

    @pytest.mark.asyncio
    async def test_first_session_lifecycle(self, service, api, clock, therapist):
        patient = Actor.patient(PATIENT_ID)
        therapist_actor = Actor.therapist(THERAPIST_ID)

        slots = await service.get_available_slots(THERAPIST_ID, TUESDAY)
        assert slots == [time(h) for h in range(9, 17)]

        result = await service.book_session(PATIENT_ID, therapist, TUESDAY, time(10), 60)
        session = result.session
        assert session.status == SessionStatus.PENDING
        assert session.session_fee == 0
        assert session.scheduled_at == START
        assert result.receipt.confirmed is True

        session = await service.accept_session(session.id, therapist_actor, LINK)
        assert session.status == SessionStatus.CONFIRMED
        assert session.meeting_link == LINK

        clock.set(START - timedelta(minutes=20))
        assert service.actions_for(session, patient).join is False

        clock.set(START - timedelta(minutes=10))
        assert service.actions_for(session, patient).join is True

        clock.set(START + timedelta(minutes=1))
        therapist_actions = service.actions_for(session, therapist_actor)
        assert therapist_actions.complete is True
        assert therapist_actions.no_show is True
        assert service.actions_for(session, patient).cancel is False

        with pytest.raises(TransitionNotAllowed) as exc_info:
            await service.cancel_session(session.id, patient, "Changed my mind")
        assert exc_info.value.guard == Guard.CANCELLATION_WINDOW

        completed = await service.complete_session(session.id, therapist_actor)
        assert completed.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_second_booking_is_charged(self, service, api, clock, therapist, make_session):
        api.add(make_session(
            id="old",
            scheduled_at=START - timedelta(days=7),
            status=SessionStatus.COMPLETED,
        ))

        result = await service.book_session(PATIENT_ID, therapist, TUESDAY, time(10), 60)

        assert result.session.session_fee == Decimal("80")
        assert result.receipt.amount == Decimal("80")
        assert result.to_dict()["is_free_trial"] is False

    @pytest.mark.asyncio
    async def test_no_show_after_start(self, service, api, clock, make_session):
        api.add(make_session(status=SessionStatus.CONFIRMED, meeting_link=LINK))
        clock.set(START + timedelta(minutes=1))

        session = await service.mark_no_show("session-1", Actor.therapist(THERAPIST_ID))

        assert session.status == SessionStatus.NO_SHOW


class TestAvailability:
    """Test date and slot offers."""

    @pytest.mark.asyncio
    async def test_booked_date_hidden(self, service, api, make_session):
        api.add(make_session())

        dates = await service.get_bookable_dates(THERAPIST_ID, days=7)

        assert TUESDAY not in dates
        assert date(2025, 1, 11) in dates  # explicit saturday range
        assert date(2025, 1, 12) not in dates  # sunday has no default
        assert await service.get_available_slots(THERAPIST_ID, TUESDAY) == []

    @pytest.mark.asyncio
    async def test_slot_mode_keeps_other_hours(self, api, clock, make_session):
        service = BookingService(
            api=api,
            payments=PaymentGateway(),
            clock=clock,
            settings=Settings(_env_file=None, blocking_mode="slot"),
        )
        api.add(make_session())

        dates = await service.get_bookable_dates(THERAPIST_ID, days=7)
        slots = await service.get_available_slots(THERAPIST_ID, TUESDAY)

        assert TUESDAY in dates
        assert time(10) not in slots
        assert time(11) in slots

    @pytest.mark.asyncio
    async def test_booking_blocked_date(self, service, api, therapist, make_session):
        api.add(make_session(patient_id="patient-2"))

        with pytest.raises(SlotUnavailableError):
            await service.book_session(PATIENT_ID, therapist, TUESDAY, time(14), 60)

        assert len(api.sessions) == 1

    @pytest.mark.asyncio
    async def test_started_slots_not_offered_today(self, service, api, clock, therapist):
        clock.set(datetime(2025, 1, 7, 13, 0, tzinfo=timezone.utc))

        slots = await service.get_available_slots(THERAPIST_ID, TUESDAY)

        assert slots == [time(13), time(14), time(15), time(16)]

        with pytest.raises(SlotUnavailableError):
            await service.book_session(PATIENT_ID, therapist, TUESDAY, time(9), 60)

        assert api.sessions == {}


class TestBookingFailures:
    """Test validation and collaborator failures."""

    @pytest.mark.asyncio
    async def test_missing_slot(self, service, api, therapist):
        with pytest.raises(MissingSelectionError):
            await service.book_session(PATIENT_ID, therapist, TUESDAY, None)

        assert api.sessions == {}

    @pytest.mark.asyncio
    async def test_payment_declined(self, api, clock, settings, therapist):
        payments = AsyncMock(spec=PaymentGateway)
        payments.confirm_payment.return_value = PaymentReceipt(
            confirmed=False, amount=Decimal("0")
        )
        service = BookingService(api=api, payments=payments, clock=clock, settings=settings)

        with pytest.raises(PaymentDeclinedError):
            await service.book_session(PATIENT_ID, therapist, TUESDAY, time(10), 60)

        assert api.sessions == {}


class TestTransitionsWithMockApi:
    """Test that guards run before remote calls."""

    @pytest.fixture
    def mock_api(self, make_session):
        api = AsyncMock()
        api.get_session.return_value = make_session()
        return api

    @pytest.fixture
    def mock_service(self, mock_api, clock, settings):
        return BookingService(api=mock_api, payments=PaymentGateway(), clock=clock, settings=settings)

    @pytest.mark.asyncio
    async def test_empty_link_never_reaches_api(self, mock_service, mock_api):
        with pytest.raises(TransitionNotAllowed) as exc_info:
            await mock_service.accept_session("session-1", Actor.therapist(THERAPIST_ID), " ")

        assert exc_info.value.guard == Guard.MEETING_LINK_REQUIRED
        mock_api.accept_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_accept_sends_trimmed_link(self, mock_service, mock_api, make_session):
        mock_api.accept_session.return_value = make_session(
            status=SessionStatus.CONFIRMED, meeting_link=LINK
        )

        session = await mock_service.accept_session(
            "session-1", Actor.therapist(THERAPIST_ID), f"  {LINK} ", notes="Welcome"
        )

        assert session.status == SessionStatus.CONFIRMED
        mock_api.accept_session.assert_called_once_with("session-1", LINK, "Welcome")

    @pytest.mark.asyncio
    async def test_reject(self, mock_service, mock_api, make_session):
        mock_api.reject_session.return_value = make_session(status=SessionStatus.REJECTED)

        await mock_service.reject_session("session-1", Actor.therapist(THERAPIST_ID), "Full")

        mock_api.reject_session.assert_called_once_with("session-1", "Full")

    @pytest.mark.asyncio
    async def test_update_notes(self, mock_service, mock_api, make_session):
        mock_api.get_session.return_value = make_session(status=SessionStatus.COMPLETED)
        mock_api.update_session_notes.return_value = make_session(
            status=SessionStatus.COMPLETED, therapist_notes="Follow up"
        )

        session = await mock_service.update_notes(
            "session-1", Actor.therapist(THERAPIST_ID), " Follow up "
        )

        assert session.therapist_notes == "Follow up"
        mock_api.update_session_notes.assert_called_once_with("session-1", "Follow up")

    @pytest.mark.asyncio
    async def test_collaborator_error_not_retried(self, mock_service, mock_api):
        mock_api.cancel_session.side_effect = httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await mock_service.cancel_session("session-1", Actor.patient(PATIENT_ID), "Travel")

        mock_api.cancel_session.assert_called_once_with("session-1", "Travel")

    def test_booking_result_to_dict(self, make_session):
        result = BookingResult(
            session=make_session(),
            receipt=PaymentReceipt(confirmed=True, amount=Decimal("0"), method="free_trial"),
        )

        data = result.to_dict()

        assert data["is_free_trial"] is True
        assert data["session"]["_id"] == "session-1"
        assert data["receipt"]["confirmed"] is True
