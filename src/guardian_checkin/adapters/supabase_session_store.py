"""Supabase-backed session store."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from guardian_checkin.domain.events import EventRecord
from guardian_checkin.domain.sessions import (
    EmergencyContact,
    Session,
    SessionDraft,
    SessionStatus,
)
from guardian_checkin.services.sessions import SessionStore

_SESSION_COLUMNS = (
    "id, user_phone, safe_word, escalation_word, location, scheduled_at, "
    "status, created_at, updated_at"
)


@dataclass
class SupabaseSessionStore(SessionStore):
    """Supabase implementation for sessions, contacts and the event log."""

    client: Client

    def create_session(self, draft: SessionDraft) -> Session:
        """Insert the session row, then its contacts."""
        response = (
            self.client.table("sessions")
            .insert(
                {
                    "user_phone": draft.user_phone,
                    "safe_word": draft.safe_word,
                    "escalation_word": draft.escalation_word,
                    "scheduled_at": draft.scheduled_at.astimezone(UTC).isoformat(),
                    "location": draft.location,
                    "status": SessionStatus.PENDING.value,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")
        row = response.data[0]
        session_id = row["id"]
        contact_rows = [
            {
                "session_id": session_id,
                "phone_number": contact.phone_number,
                "is_primary": contact.is_primary,
                "display_order": contact.display_order,
            }
            for contact in draft.contacts
        ]
        try:
            contacts_response = (
                self.client.table("emergency_contacts").insert(contact_rows).execute()
            )
            if not contacts_response.data:
                raise RuntimeError("Failed to create emergency contacts")
        except Exception:
            # A session without contacts must never reach the scheduler.
            self.client.table("sessions").delete().eq("id", session_id).execute()
            raise
        return _to_session(row, contacts_response.data)

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session with its contacts, if present."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        contacts = (
            self.client.table("emergency_contacts")
            .select("phone_number, is_primary, display_order")
            .eq("session_id", str(session_id))
            .order("display_order")
            .execute()
        )
        return _to_session(response.data[0], contacts.data or [])

    def update_status(self, session_id: UUID, status: SessionStatus) -> None:
        """Update session status."""
        self.client.table("sessions").update(
            {
                "status": status.value,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", str(session_id)).execute()

    def update_location(self, session_id: UUID, location: str) -> None:
        """Update session location."""
        self.client.table("sessions").update(
            {
                "location": location,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", str(session_id)).execute()

    def append_event(
        self,
        session_id: UUID | None,
        event_type: str,
        payload: dict[str, object] | None = None,
    ) -> None:
        """Insert an event log row."""
        self.client.table("event_log").insert(
            {
                "session_id": str(session_id) if session_id else None,
                "event_type": event_type,
                "payload": payload,
            }
        ).execute()

    def list_pending(self) -> list[Session]:
        """Return pending sessions ordered by scheduled time, without contacts."""
        return self._list_by_status(SessionStatus.PENDING, order="scheduled_at")

    def list_active(self) -> list[Session]:
        """Return active sessions, without contacts."""
        return self._list_by_status(SessionStatus.ACTIVE, order="updated_at")

    def list_events(self, session_id: UUID) -> list[EventRecord]:
        """Return a session's events in creation order."""
        response = (
            self.client.table("event_log")
            .select("session_id, event_type, payload, created_at")
            .eq("session_id", str(session_id))
            .order("created_at")
            .order("id")
            .execute()
        )
        return [
            EventRecord(
                session_id=UUID(row["session_id"]) if row.get("session_id") else None,
                event_type=row["event_type"],
                payload=row.get("payload"),
                created_at=_parse_timestamp(row["created_at"]),
            )
            for row in response.data or []
        ]

    def _list_by_status(self, status: SessionStatus, order: str) -> list[Session]:
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("status", status.value)
            .order(order)
            .execute()
        )
        return [_to_session(row, []) for row in response.data or []]


def _to_session(row: dict[str, object], contacts: list[dict[str, object]]) -> Session:
    return Session(
        id=UUID(str(row["id"])),
        user_phone=str(row["user_phone"]),
        safe_word=str(row["safe_word"]),
        escalation_word=str(row["escalation_word"]),
        scheduled_at=_parse_timestamp(row["scheduled_at"]),
        status=SessionStatus(row["status"]),
        location=row.get("location"),  # type: ignore[arg-type]
        contacts=tuple(
            EmergencyContact(
                phone_number=str(contact["phone_number"]),
                is_primary=bool(contact.get("is_primary")),
                display_order=int(contact.get("display_order") or 0),
            )
            for contact in contacts
        ),
        created_at=_parse_optional(row.get("created_at")),
        updated_at=_parse_optional(row.get("updated_at")),
    )


def _parse_timestamp(value: object) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_optional(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return _parse_timestamp(value)
    return None
