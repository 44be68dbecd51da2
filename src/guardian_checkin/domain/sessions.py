"""Domain models for scheduled check-in sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class SessionStatus(str, Enum):
    """Lifecycle states of a check-in session."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.ESCALATED, SessionStatus.CANCELLED}
)

# pending -> completed is only used by the admin bulk clear.
ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset(
        {SessionStatus.ACTIVE, SessionStatus.COMPLETED, SessionStatus.CANCELLED}
    ),
    SessionStatus.ACTIVE: frozenset(
        {
            SessionStatus.PENDING,
            SessionStatus.COMPLETED,
            SessionStatus.ESCALATED,
            SessionStatus.CANCELLED,
        }
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ESCALATED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return whether the state machine allows moving from current to target."""
    return target in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class EmergencyContact:
    """Contact notified when a session escalates."""

    phone_number: str
    is_primary: bool = False
    display_order: int = 0


@dataclass(frozen=True)
class Session:
    """Represents a persisted check-in session with its contacts."""

    id: UUID
    user_phone: str
    safe_word: str
    escalation_word: str
    scheduled_at: datetime
    status: SessionStatus
    location: str | None = None
    contacts: tuple[EmergencyContact, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        """Return whether the scheduled time has been reached."""
        return self.scheduled_at <= now


@dataclass(frozen=True)
class SessionDraft:
    """Fields required to create a new session."""

    user_phone: str
    safe_word: str
    escalation_word: str
    scheduled_at: datetime
    contacts: list[EmergencyContact] = field(default_factory=list)
    location: str | None = None


def ordered_contacts(
    contacts: "tuple[EmergencyContact, ...] | list[EmergencyContact]",
) -> list[EmergencyContact]:
    """Return contacts sorted by display order."""
    return sorted(contacts, key=lambda contact: contact.display_order)


def resolve_primary_contact(
    contacts: "tuple[EmergencyContact, ...] | list[EmergencyContact]",
) -> EmergencyContact | None:
    """Pick the contact that receives the voice alert.

    The first contact (by display order) flagged as primary wins. When no
    contact carries the flag, the lowest display order is primary.
    """
    ordered = ordered_contacts(contacts)
    for contact in ordered:
        if contact.is_primary:
            return contact
    return ordered[0] if ordered else None
