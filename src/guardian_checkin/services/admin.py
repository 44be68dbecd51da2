"""Admin service for operational views."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from guardian_checkin.config import is_public_url
from guardian_checkin.domain.sessions import Session
from guardian_checkin.services.sessions import SessionService

_logger = logging.getLogger(__name__)

_PUBLIC_URL_HINT = (
    "Set PUBLIC_BASE_URL to a public URL so the provider can reach the webhooks."
)


@dataclass
class AdminService:
    """Service for operator dashboards and overrides."""

    sessions: SessionService
    provider_configured: bool
    classifier_configured: bool
    public_base_url: str

    def clear_due(self) -> int:
        """Force-complete overdue pending sessions without calling anyone."""
        cleared = self.sessions.clear_due(datetime.now(tz=UTC))
        _logger.info("Cleared %s overdue pending sessions", cleared)
        return cleared

    def cancel(self, session_id: UUID) -> dict[str, object]:
        """Cancel a session by operator request."""
        session = self.sessions.cancel(session_id)
        return _serialize_session(session)

    def diagnostics(self) -> dict[str, object]:
        """Return queue depth, the oldest pending item and collaborator reachability."""
        now = datetime.now(tz=UTC)
        try:
            pending = self.sessions.store.list_pending()
            active = self.sessions.store.list_active()
        except Exception as exc:
            _logger.exception("Session store unreachable")
            return {
                "store_reachable": False,
                "store_error": str(exc),
                "server_time": now.isoformat(),
                **self._collaborators(),
            }
        due = [session for session in pending if session.is_due(now)]
        oldest = min(pending, key=lambda session: session.scheduled_at, default=None)
        return {
            "store_reachable": True,
            "pending_count": len(pending),
            "due_count": len(due),
            "oldest_pending": _serialize_session(oldest) if oldest else None,
            "active_count": len(active),
            "active_sessions": [_serialize_session(session) for session in active],
            "server_time": now.isoformat(),
            **self._collaborators(),
        }

    def _collaborators(self) -> dict[str, object]:
        base_url_public = is_public_url(self.public_base_url)
        return {
            "provider_configured": self.provider_configured,
            "classifier_configured": self.classifier_configured,
            "public_base_url": self.public_base_url or None,
            "public_base_url_reachable": base_url_public,
            "hint": None if base_url_public else _PUBLIC_URL_HINT,
        }


def _serialize_session(session: Session) -> dict[str, object]:
    return {
        "id": str(session.id),
        "user_phone": session.user_phone,
        "status": session.status.value,
        "scheduled_at": session.scheduled_at.isoformat(),
        "updated_at": session.updated_at.isoformat() if session.updated_at else None,
    }
