"""Session list views and statistics for the dashboards."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from carenest.core.booking.models import Session, SessionStatus, amount_to_json


def upcoming_sessions(sessions: Iterable[Session], now: datetime) -> list[Session]:
    """Open sessions that have not started, soonest first."""
    return sorted(
        (s for s in sessions if s.scheduled_at >= now and s.status.is_open),
        key=lambda s: s.scheduled_at,
    )


def past_sessions(sessions: Iterable[Session], now: datetime) -> list[Session]:
    """Started or finished sessions, most recent first."""
    return sorted(
        (s for s in sessions if s.scheduled_at < now or s.status.is_terminal),
        key=lambda s: s.scheduled_at,
        reverse=True,
    )


def pending_requests(sessions: Iterable[Session]) -> list[Session]:
    """Requests waiting for the therapist, oldest first."""
    return sorted(
        (s for s in sessions if s.status == SessionStatus.PENDING),
        key=lambda s: s.scheduled_at,
    )


@dataclass
class SessionStatistics:
    """Aggregate counts for a user's sessions."""

    total: int = 0
    by_status: dict[SessionStatus, int] = field(default_factory=dict)
    free_trials: int = 0
    completed_fees: Decimal = Decimal("0")

    def count(self, status: SessionStatus) -> int:
        return self.by_status.get(status, 0)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "total": self.total,
            "byStatus": {s.value: self.count(s) for s in SessionStatus},
            "freeTrials": self.free_trials,
            "completedFees": amount_to_json(self.completed_fees),
        }


def session_statistics(sessions: Iterable[Session]) -> SessionStatistics:
    sessions = list(sessions)
    counts = Counter(s.status for s in sessions)
    return SessionStatistics(
        total=len(sessions),
        by_status=dict(counts),
        free_trials=sum(1 for s in sessions if s.is_free_trial),
        completed_fees=sum(
            (s.session_fee for s in sessions if s.status == SessionStatus.COMPLETED),
            Decimal("0"),
        ),
    )
