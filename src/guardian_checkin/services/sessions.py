"""Session persistence interface and state machine gatekeeper."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from guardian_checkin.domain.events import EventRecord, EventType
from guardian_checkin.domain.sessions import (
    Session,
    SessionDraft,
    SessionStatus,
    can_transition,
)

_logger = logging.getLogger(__name__)

MAX_LOCATION_LENGTH = 500


class SessionStore(Protocol):
    """Persistence interface for sessions, contacts and the event log."""

    def create_session(self, draft: SessionDraft) -> Session:
        """Create a pending session with its contacts and return it."""

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session with its contacts, if present."""

    def update_status(self, session_id: UUID, status: SessionStatus) -> None:
        """Set the session status."""

    def update_location(self, session_id: UUID, location: str) -> None:
        """Set the session location text."""

    def append_event(
        self,
        session_id: UUID | None,
        event_type: str,
        payload: dict[str, object] | None = None,
    ) -> None:
        """Append an audit event."""

    def list_pending(self) -> list[Session]:
        """Return all pending sessions ordered by scheduled time."""

    def list_active(self) -> list[Session]:
        """Return all active sessions."""

    def list_events(self, session_id: UUID) -> list[EventRecord]:
        """Return events for a session in creation order."""


class SessionNotFoundError(LookupError):
    """Raised when a session id does not exist."""


class InvalidTransitionError(ValueError):
    """Raised when the state machine forbids a status change."""


class InvalidLocationError(ValueError):
    """Raised when a submitted location is empty or too long."""


@dataclass
class SessionService:
    """Owns session creation and every status change."""

    store: SessionStore

    def activate(self, draft: SessionDraft) -> Session:
        """Persist a new pending session and log its activation."""
        if not draft.contacts:
            raise ValueError("At least one emergency contact is required")
        session = self.store.create_session(draft)
        self.store.append_event(
            session.id,
            EventType.SESSION_ACTIVATED,
            {
                "user_phone": session.user_phone,
                "scheduled_at": session.scheduled_at.isoformat(),
                "contact_count": len(session.contacts),
            },
        )
        _logger.info(
            "Session activated: session_id=%s scheduled_at=%s",
            session.id,
            session.scheduled_at.isoformat(),
        )
        return session

    def get(self, session_id: UUID) -> Session:
        """Return a session or raise SessionNotFoundError."""
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return session

    def events(self, session_id: UUID) -> list[EventRecord]:
        """Return the audit history of a session."""
        self.get(session_id)
        return self.store.list_events(session_id)

    def record(
        self,
        session_id: UUID | None,
        event_type: str,
        payload: dict[str, object] | None = None,
    ) -> None:
        """Append an audit event."""
        self.store.append_event(session_id, event_type, payload)

    def transition(
        self,
        session: Session,
        target: SessionStatus,
        reason: str,
        **details: object,
    ) -> Session:
        """Move a session to a new status and log the outcome.

        The move is checked against the stored status, not the caller's copy.
        The caller logs the trigger beforehand; this writes the
        ``status_changed`` event after the store update.
        """
        current = self.store.get_session(session.id)
        if current is None:
            raise SessionNotFoundError(f"Session {session.id} not found")
        if not can_transition(current.status, target):
            raise InvalidTransitionError(
                f"Cannot move session {session.id} from "
                f"{current.status.value} to {target.value}"
            )
        self.store.update_status(session.id, target)
        payload: dict[str, object] = {
            "from": current.status.value,
            "to": target.value,
            "reason": reason,
        }
        payload.update(details)
        self.store.append_event(session.id, EventType.STATUS_CHANGED, payload)
        _logger.info(
            "Session %s: %s -> %s (%s)",
            session.id,
            current.status.value,
            target.value,
            reason,
        )
        return replace(current, status=target)

    def update_location(self, session_id: UUID, location: str) -> Session:
        """Validate and persist a location text."""
        cleaned = location.strip()
        if not cleaned or len(cleaned) > MAX_LOCATION_LENGTH:
            raise InvalidLocationError(
                f"Location must be 1-{MAX_LOCATION_LENGTH} characters"
            )
        session = self.get(session_id)
        self.store.update_location(session_id, cleaned)
        self.store.append_event(
            session_id,
            EventType.LOCATION_SUBMITTED,
            {
                "location": cleaned,
                "submitted_at": datetime.now(tz=UTC).isoformat(),
            },
        )
        return replace(session, location=cleaned)

    def cancel(self, session_id: UUID, reason: str = "admin_override") -> Session:
        """Cancel a non-terminal session."""
        session = self.get(session_id)
        if not can_transition(session.status, SessionStatus.CANCELLED):
            raise InvalidTransitionError(
                f"Session {session_id} is already {session.status.value}"
            )
        self.store.append_event(
            session_id, EventType.SESSION_CANCELLED, {"reason": reason}
        )
        return self.transition(session, SessionStatus.CANCELLED, reason)

    def clear_due(self, now: datetime | None = None) -> int:
        """Complete every overdue pending session without calling anyone."""
        current = now or datetime.now(tz=UTC)
        cleared = 0
        for session in self.store.list_pending():
            if not session.is_due(current):
                continue
            self.store.append_event(
                session.id, EventType.SESSION_CLEARED, {"reason": "cleared_by_admin"}
            )
            self.transition(session, SessionStatus.COMPLETED, "cleared_by_admin")
            cleared += 1
        self.store.append_event(
            None,
            EventType.SESSIONS_CLEARED,
            {"updated": cleared, "cleared_at": current.isoformat()},
        )
        return cleared
