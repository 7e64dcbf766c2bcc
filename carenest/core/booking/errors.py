"""Booking errors.

Validation errors are raised before anything is built and mean the caller
should re-prompt. TransitionNotAllowed names the guard that failed so the
caller can show a precise message. Network failures from the REST API are
not wrapped here; they surface as httpx exceptions.
"""

from enum import Enum
from typing import Optional


class Guard(str, Enum):
    """Preconditions a session transition can violate."""

    INVALID_STATE = "invalid_state"
    ROLE = "role"
    OWNERSHIP = "ownership"
    MEETING_LINK_REQUIRED = "meeting_link_required"
    CANCELLATION_WINDOW = "cancellation_window"
    REASON_REQUIRED = "reason_required"
    SESSION_NOT_STARTED = "session_not_started"


class BookingError(Exception):
    """Base class for booking core errors."""


class BookingValidationError(BookingError):
    """Caller input is incomplete or invalid."""


class MissingSelectionError(BookingValidationError):
    """No date or time slot was chosen."""


class InvalidDurationError(BookingValidationError):
    """Requested duration is not one of the configured lengths."""

    def __init__(self, duration: int, allowed: list[int]):
        self.duration = duration
        self.allowed = list(allowed)
        super().__init__(
            f"Duration {duration} minutes is not allowed; choose one of {self.allowed}"
        )


class TherapistUnresolvedError(BookingValidationError):
    """Therapist record has not been loaded."""


class InvalidAvailabilityError(BookingValidationError):
    """Availability payload could not be parsed."""


class InvalidSessionDataError(BookingValidationError):
    """Session payload from the API is missing required fields."""


class PaymentDeclinedError(BookingError):
    """Payment collaborator did not confirm the booking."""


class TransitionNotAllowed(BookingError):
    """A session transition was attempted outside its guard."""

    def __init__(
        self,
        event: str,
        status: str,
        guard: Guard,
        message: Optional[str] = None,
    ):
        self.event = event
        self.status = status
        self.guard = guard
        self.message = message or f"Cannot {event} a session that is {status}"
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for API/UI consumption."""
        return {
            "event": self.event,
            "status": self.status,
            "guard": self.guard.value,
            "message": self.message,
        }


class SlotUnavailableError(BookingValidationError):
    """Chosen date or slot is no longer offered."""
