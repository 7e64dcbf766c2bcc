"""
Action eligibility.

Pure, time-dependent predicates that tell a presentation layer which
controls to enable for a session. They are advisory: the state machine
re-checks its own guards on every transition.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from carenest.config import Settings, get_settings
from carenest.core.booking.models import Actor, Role, Session, SessionStatus

JOINABLE_STATUSES = frozenset({SessionStatus.CONFIRMED})
CANCELLABLE_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.CONFIRMED})
NOTE_STATUSES = frozenset({
    SessionStatus.CONFIRMED,
    SessionStatus.COMPLETED,
    SessionStatus.NO_SHOW,
})


def _settings(settings: Optional[Settings]) -> Settings:
    return settings or get_settings()


def can_join(session: Session, now: datetime, settings: Optional[Settings] = None) -> bool:
    """Confirmed, has a link, and now is in [start - join window, start]."""
    window = timedelta(minutes=_settings(settings).join_window_minutes)
    return (
        session.status in JOINABLE_STATUSES
        and bool(session.meeting_link)
        and session.scheduled_at - window <= now <= session.scheduled_at
    )


def can_patient_cancel(
    session: Session,
    now: datetime,
    settings: Optional[Settings] = None,
) -> bool:
    """Pending or confirmed, and the cancellation cutoff has not passed."""
    window = timedelta(hours=_settings(settings).cancellation_window_hours)
    return (
        session.status in CANCELLABLE_STATUSES
        and now < session.scheduled_at - window
    )


def can_therapist_act(session: Session, now: datetime) -> bool:
    """Confirmed and started: complete or no-show may be recorded."""
    return session.status == SessionStatus.CONFIRMED and now >= session.scheduled_at


def can_therapist_respond(session: Session) -> bool:
    """Pending requests can be accepted or rejected."""
    return session.status == SessionStatus.PENDING


def can_update_notes(session: Session) -> bool:
    return session.status in NOTE_STATUSES


@dataclass(frozen=True)
class SessionActions:
    """Enabled controls for one actor on one session."""

    join: bool = False
    cancel: bool = False
    accept: bool = False
    reject: bool = False
    complete: bool = False
    no_show: bool = False
    update_notes: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "join": self.join,
            "cancel": self.cancel,
            "accept": self.accept,
            "reject": self.reject,
            "complete": self.complete,
            "no_show": self.no_show,
            "update_notes": self.update_notes,
        }


def available_actions(
    session: Session,
    actor: Actor,
    now: datetime,
    settings: Optional[Settings] = None,
) -> SessionActions:
    """Controls to enable for ``actor`` on ``session`` at ``now``.

    Actors who are not a participant of the session get nothing.
    """
    settings = _settings(settings)

    if actor.role == Role.PATIENT and actor.user_id == session.patient_id:
        return SessionActions(
            join=can_join(session, now, settings),
            cancel=can_patient_cancel(session, now, settings),
        )

    if actor.role == Role.THERAPIST and actor.user_id == session.therapist_id:
        respond = can_therapist_respond(session)
        act = can_therapist_act(session, now)
        return SessionActions(
            join=can_join(session, now, settings),
            accept=respond,
            reject=respond,
            complete=act,
            no_show=act,
            update_notes=can_update_notes(session),
        )

    return SessionActions()
