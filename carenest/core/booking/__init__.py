"""
Booking Module

Session booking and lifecycle rules: availability resolution, calendar
gating, free-trial pricing, the session state machine and action
eligibility. Everything here is synchronous and side-effect free; the
async orchestrator lives in ``carenest.core.booking.service``.

Usage:
    from carenest.core.booking import (
        Actor,
        AvailabilityResolver,
        FixedClock,
        SessionStateMachine,
        can_join,
    )

    slots = AvailabilityResolver().resolve_slots(day, availability)
    confirmed = SessionStateMachine(clock).accept(
        session, Actor.therapist(therapist_id), "https://meet.example/abc"
    )
"""

# Clock
from carenest.core.booking.clock import Clock, FixedClock, SystemClock

# Errors
from carenest.core.booking.errors import (
    BookingError,
    BookingValidationError,
    Guard,
    InvalidAvailabilityError,
    InvalidDurationError,
    InvalidSessionDataError,
    MissingSelectionError,
    PaymentDeclinedError,
    SlotUnavailableError,
    TherapistUnresolvedError,
    TransitionNotAllowed,
)

# Models
from carenest.core.booking.models import (
    Actor,
    Availability,
    PaymentStatus,
    Role,
    Session,
    SessionRequest,
    SessionStatus,
    Therapist,
    TimeRange,
)

# Availability & Calendar
from carenest.core.booking.availability import AvailabilityResolver, format_slot
from carenest.core.booking.calendar_gate import CalendarGate

# Negotiation
from carenest.core.booking.negotiator import BookingNegotiator

# Lifecycle
from carenest.core.booking.state_machine import SessionEvent, SessionStateMachine

# Eligibility
from carenest.core.booking.eligibility import (
    SessionActions,
    available_actions,
    can_join,
    can_patient_cancel,
    can_therapist_act,
)

# Views
from carenest.core.booking.views import (
    SessionStatistics,
    past_sessions,
    pending_requests,
    session_statistics,
    upcoming_sessions,
)

__all__ = [
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Errors
    "BookingError",
    "BookingValidationError",
    "Guard",
    "InvalidAvailabilityError",
    "InvalidDurationError",
    "InvalidSessionDataError",
    "MissingSelectionError",
    "PaymentDeclinedError",
    "SlotUnavailableError",
    "TherapistUnresolvedError",
    "TransitionNotAllowed",
    # Models
    "Actor",
    "Availability",
    "PaymentStatus",
    "Role",
    "Session",
    "SessionRequest",
    "SessionStatus",
    "Therapist",
    "TimeRange",
    # Availability & Calendar
    "AvailabilityResolver",
    "CalendarGate",
    "format_slot",
    # Negotiation
    "BookingNegotiator",
    # Lifecycle
    "SessionEvent",
    "SessionStateMachine",
    # Eligibility
    "SessionActions",
    "available_actions",
    "can_join",
    "can_patient_cancel",
    "can_therapist_act",
    # Views
    "SessionStatistics",
    "past_sessions",
    "pending_requests",
    "session_statistics",
    "upcoming_sessions",
]
