"""Session lifecycle state machine."""

import logging
from datetime import timedelta
from enum import Enum
from typing import Optional, Set

from carenest.config import Settings, get_settings
from carenest.core.booking.clock import Clock, SystemClock
from carenest.core.booking.errors import Guard, TransitionNotAllowed
from carenest.core.booking.models import Actor, Role, Session, SessionStatus

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Therapist rejected the request"


class SessionEvent(str, Enum):
    """Events that move a session through its lifecycle."""

    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"
    NO_SHOW = "no-show"
    UPDATE_NOTES = "update_notes"


# Valid transitions: (from_state, event) -> to_state
VALID_TRANSITIONS: dict[tuple[SessionStatus, SessionEvent], SessionStatus] = {
    (SessionStatus.PENDING, SessionEvent.ACCEPT): SessionStatus.CONFIRMED,
    (SessionStatus.PENDING, SessionEvent.REJECT): SessionStatus.REJECTED,
    (SessionStatus.PENDING, SessionEvent.CANCEL): SessionStatus.CANCELLED,
    (SessionStatus.CONFIRMED, SessionEvent.CANCEL): SessionStatus.CANCELLED,
    (SessionStatus.CONFIRMED, SessionEvent.COMPLETE): SessionStatus.COMPLETED,
    (SessionStatus.CONFIRMED, SessionEvent.NO_SHOW): SessionStatus.NO_SHOW,
    # Notes leave the status unchanged
    (SessionStatus.CONFIRMED, SessionEvent.UPDATE_NOTES): SessionStatus.CONFIRMED,
    (SessionStatus.COMPLETED, SessionEvent.UPDATE_NOTES): SessionStatus.COMPLETED,
    (SessionStatus.NO_SHOW, SessionEvent.UPDATE_NOTES): SessionStatus.NO_SHOW,
}

# Roles allowed to trigger each event
EVENT_ROLES: dict[SessionEvent, Set[Role]] = {
    SessionEvent.ACCEPT: {Role.THERAPIST},
    SessionEvent.REJECT: {Role.THERAPIST},
    SessionEvent.CANCEL: {Role.PATIENT, Role.SYSTEM},
    SessionEvent.COMPLETE: {Role.THERAPIST},
    SessionEvent.NO_SHOW: {Role.THERAPIST},
    SessionEvent.UPDATE_NOTES: {Role.THERAPIST},
}


def can_transition(status: SessionStatus, event: SessionEvent) -> bool:
    """Check if an event is defined for a status (ignores guards)."""
    return (status, event) in VALID_TRANSITIONS


def get_valid_events(status: SessionStatus) -> Set[SessionEvent]:
    """Get all events defined for a status."""
    return {event for (state, event) in VALID_TRANSITIONS if state == status}


def is_terminal_state(status: SessionStatus) -> bool:
    """Check if status is terminal (no further lifecycle transitions)."""
    return status.is_terminal


class SessionStateMachine:
    """
    Authoritative session transitions.

    Every method re-checks state, role, ownership and time guards against
    the injected clock and returns a new Session; the input is never
    modified, so a failed attempt can be retried or rolled back safely.
    """

    def __init__(self, clock: Optional[Clock] = None, settings: Optional[Settings] = None):
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

    # === Guards ===

    def _check(self, session: Session, event: SessionEvent, actor: Actor) -> SessionStatus:
        """Validate state, role and ownership; return the target status."""
        target = VALID_TRANSITIONS.get((session.status, event))
        if target is None:
            raise self._deny(session, event, Guard.INVALID_STATE)

        if actor.role not in EVENT_ROLES[event]:
            raise self._deny(
                session,
                event,
                Guard.ROLE,
                f"A {actor.role.value} cannot {event.value} a session",
            )

        owner = {
            Role.PATIENT: session.patient_id,
            Role.THERAPIST: session.therapist_id,
        }.get(actor.role)
        if actor.role != Role.SYSTEM and actor.user_id != owner:
            raise self._deny(
                session,
                event,
                Guard.OWNERSHIP,
                f"Session {session.id} does not belong to this {actor.role.value}",
            )
        return target

    def _deny(
        self,
        session: Session,
        event: SessionEvent,
        guard: Guard,
        message: Optional[str] = None,
    ) -> TransitionNotAllowed:
        error = TransitionNotAllowed(
            event=event.value,
            status=session.status.value,
            guard=guard,
            message=message,
        )
        logger.warning(
            f"Transition {event.value} denied for session {session.id} "
            f"({session.status.value}): {guard.value}"
        )
        return error

    def _require_started(self, session: Session, event: SessionEvent) -> None:
        if self._clock.now() < session.scheduled_at:
            raise self._deny(
                session,
                event,
                Guard.SESSION_NOT_STARTED,
                "The session has not started yet",
            )

    def _finish(self, session: Session, event: SessionEvent, **changes) -> Session:
        updated = session.evolve(updated_at=self._clock.now(), **changes)
        if updated.status != session.status:
            logger.info(
                f"Session {session.id}: {session.status.value} -> "
                f"{updated.status.value} ({event.value})"
            )
        return updated

    # === Transitions ===

    def accept(
        self,
        session: Session,
        actor: Actor,
        meeting_link: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Session:
        """Therapist accepts a pending request with a meeting link."""
        target = self._check(session, SessionEvent.ACCEPT, actor)
        link = (meeting_link or "").strip()
        if not link:
            raise self._deny(
                session,
                SessionEvent.ACCEPT,
                Guard.MEETING_LINK_REQUIRED,
                "Please provide a meeting link",
            )

        changes = {"status": target, "meeting_link": link}
        if notes and notes.strip():
            changes["therapist_notes"] = notes.strip()
        return self._finish(session, SessionEvent.ACCEPT, **changes)

    def reject(self, session: Session, actor: Actor, reason: Optional[str] = None) -> Session:
        """Therapist rejects a pending request."""
        target = self._check(session, SessionEvent.REJECT, actor)
        return self._finish(
            session,
            SessionEvent.REJECT,
            status=target,
            cancellation_reason=(reason or "").strip() or DEFAULT_REJECTION_REASON,
        )

    def cancel(self, session: Session, actor: Actor, reason: Optional[str] = None) -> Session:
        """Cancel a pending or confirmed session.

        Patients may only cancel while more than the cancellation window
        remains before the start; system cancellations skip that window.
        """
        target = self._check(session, SessionEvent.CANCEL, actor)

        if actor.role == Role.PATIENT:
            window = timedelta(hours=self._settings.cancellation_window_hours)
            if not self._clock.now() < session.scheduled_at - window:
                raise self._deny(
                    session,
                    SessionEvent.CANCEL,
                    Guard.CANCELLATION_WINDOW,
                    f"Sessions cannot be cancelled within "
                    f"{self._settings.cancellation_window_hours} hours of the start",
                )

        text = (reason or "").strip()
        if not text:
            raise self._deny(
                session,
                SessionEvent.CANCEL,
                Guard.REASON_REQUIRED,
                "Please provide a cancellation reason",
            )
        return self._finish(
            session,
            SessionEvent.CANCEL,
            status=target,
            cancellation_reason=text,
        )

    def complete(self, session: Session, actor: Actor) -> Session:
        """Therapist marks a started session as completed."""
        target = self._check(session, SessionEvent.COMPLETE, actor)
        self._require_started(session, SessionEvent.COMPLETE)
        return self._finish(session, SessionEvent.COMPLETE, status=target)

    def mark_no_show(self, session: Session, actor: Actor) -> Session:
        """Therapist marks a started session as a no-show."""
        target = self._check(session, SessionEvent.NO_SHOW, actor)
        self._require_started(session, SessionEvent.NO_SHOW)
        return self._finish(session, SessionEvent.NO_SHOW, status=target)

    def update_notes(self, session: Session, actor: Actor, notes: Optional[str] = None) -> Session:
        """Therapist adds or replaces session notes."""
        self._check(session, SessionEvent.UPDATE_NOTES, actor)
        return self._finish(
            session,
            SessionEvent.UPDATE_NOTES,
            therapist_notes=(notes or "").strip() or None,
        )

    def apply(self, session: Session, event: SessionEvent, actor: Actor, **kwargs) -> Session:
        """Dispatch an event by name.

        Keyword arguments are passed to the matching transition
        (``meeting_link``/``notes`` for accept, ``reason`` for reject and
        cancel, ``notes`` for update_notes).
        """
        handlers = {
            SessionEvent.ACCEPT: self.accept,
            SessionEvent.REJECT: self.reject,
            SessionEvent.CANCEL: self.cancel,
            SessionEvent.COMPLETE: self.complete,
            SessionEvent.NO_SHOW: self.mark_no_show,
            SessionEvent.UPDATE_NOTES: self.update_notes,
        }
        return handlers[SessionEvent(event)](session, actor, **kwargs)
