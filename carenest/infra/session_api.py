"""
HTTP client for the CareNest REST API.

The API owns persistence and serializes concurrent updates. It exposes:
- GET  /therapists/{id}                 - Therapist profile
- GET  /therapists/{id}/availability    - Weekly availability
- GET  /sessions                        - List sessions (filters as query)
- GET  /sessions/{id}                   - Session details
- POST /sessions                        - Create session request
- POST /sessions/{id}/accept            - Therapist accepts
- POST /sessions/{id}/reject            - Therapist rejects
- POST /sessions/{id}/cancel            - Cancel
- POST /sessions/{id}/complete          - Therapist completes
- POST /sessions/{id}/no-show           - Therapist marks no-show
- PUT  /sessions/{id}/notes             - Therapist notes
- PUT  /sessions/{id}/payment           - Payment status

HTTP and network errors are logged and re-raised unchanged; nothing here
retries.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from carenest.config import get_settings
from carenest.core.booking.models import (
    Availability,
    PaymentStatus,
    Session,
    SessionRequest,
    SessionStatus,
    Therapist,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionFilter:
    """Query filter for listing sessions."""

    patient_id: Optional[str] = None
    therapist_id: Optional[str] = None
    status: Optional[SessionStatus] = None

    def to_params(self) -> dict:
        """Convert to query parameters."""
        params = {}
        if self.patient_id:
            params["patientId"] = self.patient_id
        if self.therapist_id:
            params["therapistId"] = self.therapist_id
        if self.status:
            params["status"] = self.status.value
        return params


def _unwrap(data: Any, *keys: str) -> Any:
    """Strip {"data": ...} and resource-named envelopes from a response."""
    if isinstance(data, dict) and "data" in data:
        data = data["data"]
    if isinstance(data, dict):
        for key in keys:
            if key in data:
                return data[key]
    return data


class SessionApiClient:
    """
    HTTP client for session and therapist endpoints.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
    ):
        """Initialize client.

        Args:
            base_url: API base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            token: Bearer token of the signed-in user
        """
        settings = get_settings()
        self.base_url = base_url or settings.api_base_url
        self.timeout = timeout or settings.api_timeout
        self.token = token
        self._tz = settings.tzinfo
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise

        if response.status_code == 204:
            return None
        return response.json()

    def _session(self, data: Any) -> Session:
        return Session.from_dict(_unwrap(data, "session"), default_tz=self._tz)

    # === Therapists ===

    async def get_therapist(self, therapist_id: str) -> Therapist:
        """Get a therapist profile."""
        data = await self._request("GET", f"/therapists/{therapist_id}")
        return Therapist.from_dict(_unwrap(data, "therapist"))

    async def get_therapist_availability(self, therapist_id: str) -> Availability:
        """Get a therapist's weekly availability."""
        data = await self._request("GET", f"/therapists/{therapist_id}/availability")
        return Availability.from_dict(
            _unwrap(data, "availability"),
            therapist_id=therapist_id,
        )

    # === Sessions ===

    async def list_sessions(self, session_filter: Optional[SessionFilter] = None) -> list[Session]:
        """List sessions matching a filter.

        Args:
            session_filter: Patient/therapist/status filter

        Returns:
            List of sessions
        """
        params = session_filter.to_params() if session_filter else {}
        data = await self._request("GET", "/sessions", params=params)
        items = _unwrap(data, "sessions", "items")
        return [Session.from_dict(item, default_tz=self._tz) for item in items or []]

    async def get_session(self, session_id: str) -> Session:
        data = await self._request("GET", f"/sessions/{session_id}")
        return self._session(data)

    async def create_session(self, request: SessionRequest) -> Session:
        """Create a session request (starts in pending)."""
        data = await self._request("POST", "/sessions", json=request.to_payload())
        session = self._session(data)
        logger.info(f"Session {session.id} created for therapist {session.therapist_id}")
        return session

    async def accept_session(
        self,
        session_id: str,
        meeting_link: str,
        notes: Optional[str] = None,
    ) -> Session:
        data = await self._request(
            "POST",
            f"/sessions/{session_id}/accept",
            json={"meetingLink": meeting_link, "therapistNotes": notes or ""},
        )
        return self._session(data)

    async def reject_session(self, session_id: str, reason: Optional[str] = None) -> Session:
        data = await self._request(
            "POST",
            f"/sessions/{session_id}/reject",
            json={"reason": reason or ""},
        )
        return self._session(data)

    async def cancel_session(self, session_id: str, reason: str) -> Session:
        data = await self._request(
            "POST",
            f"/sessions/{session_id}/cancel",
            json={"cancellationReason": reason},
        )
        return self._session(data)

    async def complete_session(self, session_id: str) -> Session:
        data = await self._request("POST", f"/sessions/{session_id}/complete")
        return self._session(data)

    async def mark_no_show(self, session_id: str) -> Session:
        data = await self._request("POST", f"/sessions/{session_id}/no-show")
        return self._session(data)

    async def update_session_notes(self, session_id: str, notes: Optional[str]) -> Session:
        data = await self._request(
            "PUT",
            f"/sessions/{session_id}/notes",
            json={"therapistNotes": notes or ""},
        )
        return self._session(data)

    async def update_payment_status(self, session_id: str, status: PaymentStatus) -> Session:
        data = await self._request(
            "PUT",
            f"/sessions/{session_id}/payment",
            json={"paymentStatus": status.value},
        )
        return self._session(data)


# Singleton
_client: Optional[SessionApiClient] = None


def get_session_api() -> SessionApiClient:
    """Get singleton SessionApiClient."""
    global _client
    if _client is None:
        _client = SessionApiClient()
    return _client
