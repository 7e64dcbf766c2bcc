"""
Booking domain models.

Sessions, therapist availability and creation requests, plus the
translation to and from the camelCase shapes used by the REST API.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from carenest.core.booking.errors import (
    InvalidAvailabilityError,
    InvalidSessionDataError,
)

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([aApP][mM])?\s*$")


# ==================================
# Enums
# ==================================

class SessionStatus(str, Enum):
    """Lifecycle states of a therapy session."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    NO_SHOW = "no-show"

    @classmethod
    def parse(cls, value: Any) -> "SessionStatus":
        """Normalize a status string from the API.

        "scheduled" is the same post-acceptance state as "confirmed", and
        "no_show" is an older spelling of "no-show".
        """
        if isinstance(value, SessionStatus):
            return value
        normalized = str(value or "").strip().lower()
        normalized = _STATUS_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidSessionDataError(f"Unknown session status: {value!r}")

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_open(self) -> bool:
        """Pending or accepted; the session still holds a calendar slot."""
        return self in OPEN_STATUSES


_STATUS_ALIASES = {
    "scheduled": "confirmed",
    "no_show": "no-show",
    "noshow": "no-show",
    "canceled": "cancelled",
}

TERMINAL_STATUSES = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.CANCELLED,
    SessionStatus.REJECTED,
    SessionStatus.NO_SHOW,
})

OPEN_STATUSES = frozenset({
    SessionStatus.PENDING,
    SessionStatus.CONFIRMED,
})


class PaymentStatus(str, Enum):
    """Payment state, owned by the payment collaborator."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"

    @classmethod
    def parse(cls, value: Any) -> "PaymentStatus":
        if isinstance(value, PaymentStatus):
            return value
        try:
            return cls(str(value or "pending").strip().lower())
        except ValueError:
            raise InvalidSessionDataError(f"Unknown payment status: {value!r}")


class Role(str, Enum):
    """Who is acting on a session."""

    PATIENT = "patient"
    THERAPIST = "therapist"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Identity attempting a transition."""

    user_id: str
    role: Role

    @classmethod
    def patient(cls, user_id: str) -> "Actor":
        return cls(user_id=user_id, role=Role.PATIENT)

    @classmethod
    def therapist(cls, user_id: str) -> "Actor":
        return cls(user_id=user_id, role=Role.THERAPIST)

    @classmethod
    def system(cls) -> "Actor":
        return cls(user_id="system", role=Role.SYSTEM)


# ==================================
# Parsing helpers
# ==================================

def parse_time_of_day(value: Any) -> time:
    """Parse "HH:MM", "HH:MM:SS" or "h:MM am/pm" into a time."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise InvalidAvailabilityError(f"Invalid time of day: {value!r}")

    match = _TIME_RE.match(value)
    if not match:
        raise InvalidAvailabilityError(f"Invalid time of day: {value!r}")

    hour, minute, second, meridiem = match.groups()
    hour, minute = int(hour), int(minute)
    if meridiem:
        if not 1 <= hour <= 12:
            raise InvalidAvailabilityError(f"Invalid time of day: {value!r}")
        hour = hour % 12 + (12 if meridiem.lower() == "pm" else 0)
    try:
        return time(hour, minute, int(second or 0))
    except ValueError:
        raise InvalidAvailabilityError(f"Invalid time of day: {value!r}")


def parse_timestamp(value: Any, default_tz: tzinfo = timezone.utc) -> datetime:
    """Parse an ISO-8601 timestamp and normalize it to UTC.

    Naive values are interpreted in ``default_tz``.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidSessionDataError(f"Invalid timestamp: {value!r}")
    else:
        raise InvalidSessionDataError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed.astimezone(timezone.utc)


def parse_amount(value: Any) -> Decimal:
    """Parse a non-negative money amount."""
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidSessionDataError(f"Invalid amount: {value!r}")
    if amount < 0 or not amount.is_finite():
        raise InvalidSessionDataError(f"Amount must be non-negative: {value!r}")
    return amount


def amount_to_json(amount: Decimal) -> int | float:
    """Render a Decimal the way the API expects numbers."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _reference_id(value: Any) -> str:
    """Reduce a populated reference ({"_id": ...}) to its id."""
    if isinstance(value, Mapping):
        value = value.get("_id") or value.get("id")
    return str(value) if value else ""


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ==================================
# Availability
# ==================================

@dataclass(frozen=True)
class TimeRange:
    """A [start, end) range of a working day."""

    start: time
    end: time

    @classmethod
    def from_value(cls, data: Any) -> "TimeRange":
        """Create from a dict or a "09:00-12:00" string."""
        if isinstance(data, TimeRange):
            return data
        if isinstance(data, str) and "-" in data:
            start, end = data.split("-", 1)
        elif isinstance(data, Mapping):
            start = data.get("start", data.get("startTime"))
            end = data.get("end", data.get("endTime"))
        elif isinstance(data, (list, tuple)) and len(data) == 2:
            start, end = data
        else:
            raise InvalidAvailabilityError(f"Invalid time range: {data!r}")

        if start is None or end is None:
            raise InvalidAvailabilityError(f"Time range needs start and end: {data!r}")
        return cls(start=parse_time_of_day(start), end=parse_time_of_day(end))

    def to_dict(self) -> dict:
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
        }


@dataclass(frozen=True)
class Availability:
    """Weekly recurring availability of one therapist.

    Days without an entry are meaningful: the resolver applies the default
    working hours on weekdays and nothing at weekends.
    """

    therapist_id: str = ""
    weekly: Mapping[str, tuple[TimeRange, ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping], therapist_id: str = "") -> "Availability":
        """Create from an API payload keyed by weekday name."""
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise InvalidAvailabilityError(
                f"Availability must be an object keyed by weekday, got {type(data).__name__}"
            )
        weekly: dict[str, tuple[TimeRange, ...]] = {}
        for key, ranges in data.items():
            day = str(key).strip().lower()
            if day not in WEEKDAYS:
                logger.warning(f"Ignoring unknown weekday in availability: {key!r}")
                continue
            if not ranges:
                continue
            if isinstance(ranges, (str, Mapping)):
                ranges = [ranges]
            parsed = sorted(
                (TimeRange.from_value(r) for r in ranges),
                key=lambda r: (r.start, r.end),
            )
            weekly[day] = tuple(parsed)
        return cls(therapist_id=therapist_id, weekly=weekly)

    def ranges_for(self, weekday: str) -> tuple[TimeRange, ...]:
        """Explicit ranges for a weekday, or an empty tuple."""
        return tuple(self.weekly.get(weekday, ()))

    def to_dict(self) -> dict:
        return {
            day: [r.to_dict() for r in self.weekly[day]]
            for day in WEEKDAYS
            if day in self.weekly
        }


@dataclass(frozen=True)
class Therapist:
    """Therapist profile fields the booking flow needs."""

    id: str
    name: str = ""
    session_rate: Decimal = Decimal("0")
    availability: Availability = field(default_factory=Availability)

    @classmethod
    def from_dict(cls, data: Mapping) -> "Therapist":
        """Create from API response dict."""
        therapist_id = _reference_id(data.get("_id") or data.get("id"))
        user = data.get("userId") if isinstance(data.get("userId"), Mapping) else {}
        name = data.get("name") or user.get("name") or ""
        rate = data.get("sessionRate", data.get("hourlyRate", data.get("sessionFee")))
        return cls(
            id=therapist_id,
            name=name,
            session_rate=parse_amount(rate),
            availability=Availability.from_dict(
                data.get("availability"), therapist_id=therapist_id
            ),
        )


# ==================================
# Session
# ==================================

@dataclass(frozen=True)
class Session:
    """A therapy appointment.

    Instances are immutable; transitions return a new copy via ``evolve``.
    """

    id: str
    patient_id: str
    therapist_id: str
    scheduled_at: datetime
    duration: int
    session_fee: Decimal = Decimal("0")
    status: SessionStatus = SessionStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    meeting_link: Optional[str] = None
    therapist_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration)

    @property
    def is_free_trial(self) -> bool:
        return self.session_fee == 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def evolve(self, **changes) -> "Session":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Check whether [start, end) intersects this session."""
        return self.scheduled_at < end and self.ends_at > start

    @classmethod
    def from_dict(cls, data: Mapping, default_tz: tzinfo = timezone.utc) -> "Session":
        """Create from API response dict."""
        session_id = _reference_id(data.get("_id") or data.get("id"))
        if not session_id:
            raise InvalidSessionDataError("Session payload has no id")
        if not data.get("scheduledAt"):
            raise InvalidSessionDataError(f"Session {session_id} has no scheduledAt")

        try:
            duration = int(data.get("duration") or 60)
        except (TypeError, ValueError):
            raise InvalidSessionDataError(f"Invalid duration: {data.get('duration')!r}")

        created = data.get("createdAt")
        updated = data.get("updatedAt")
        return cls(
            id=session_id,
            patient_id=_reference_id(data.get("patientId")),
            therapist_id=_reference_id(data.get("therapistId")),
            scheduled_at=parse_timestamp(data["scheduledAt"], default_tz),
            duration=duration,
            session_fee=parse_amount(data.get("sessionFee")),
            status=SessionStatus.parse(data.get("status", "pending")),
            payment_status=PaymentStatus.parse(data.get("paymentStatus")),
            meeting_link=_optional_text(data.get("meetingLink")),
            therapist_notes=_optional_text(data.get("therapistNotes")),
            cancellation_reason=_optional_text(data.get("cancellationReason")),
            created_at=parse_timestamp(created, default_tz) if created else None,
            updated_at=parse_timestamp(updated, default_tz) if updated else None,
        )

    def to_dict(self) -> dict:
        """Convert to the API's camelCase shape."""
        result = {
            "_id": self.id,
            "patientId": self.patient_id,
            "therapistId": self.therapist_id,
            "scheduledAt": self.scheduled_at.isoformat(),
            "duration": self.duration,
            "sessionFee": amount_to_json(self.session_fee),
            "status": self.status.value,
            "paymentStatus": self.payment_status.value,
        }
        if self.meeting_link:
            result["meetingLink"] = self.meeting_link
        if self.therapist_notes:
            result["therapistNotes"] = self.therapist_notes
        if self.cancellation_reason:
            result["cancellationReason"] = self.cancellation_reason
        if self.created_at:
            result["createdAt"] = self.created_at.isoformat()
        if self.updated_at:
            result["updatedAt"] = self.updated_at.isoformat()
        return result


def sessions_between(
    sessions: Iterable[Session],
    patient_id: str,
    therapist_id: str,
) -> list[Session]:
    """Sessions for one patient/therapist pair."""
    return [
        s for s in sessions
        if s.patient_id == patient_id and s.therapist_id == therapist_id
    ]


class SessionRequest(BaseModel):
    """Session creation request produced by the booking negotiator."""

    patient_id: str = Field(min_length=1)
    therapist_id: str = Field(min_length=1)
    scheduled_at: datetime
    duration: int = Field(gt=0)
    session_fee: Decimal = Field(ge=0)

    @property
    def is_free_trial(self) -> bool:
        return self.session_fee == 0

    @property
    def day(self) -> date:
        return self.scheduled_at.date()

    def to_payload(self) -> dict:
        """Body for POST /sessions."""
        return {
            "patientId": self.patient_id,
            "therapistId": self.therapist_id,
            "scheduledAt": self.scheduled_at.isoformat(),
            "duration": self.duration,
            "sessionFee": amount_to_json(self.session_fee),
        }
