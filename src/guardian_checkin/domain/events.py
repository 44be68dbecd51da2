"""Audit event types and replay helpers."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from guardian_checkin.domain.sessions import SessionStatus


class EventType:
    """Known event type names. The set is open; stores accept any string."""

    SESSION_ACTIVATED = "session_activated"
    STATUS_CHANGED = "status_changed"
    CALL_INITIATED = "call_initiated"
    CALL_PLACED = "call_placed"
    CALL_FAILED = "call_failed"
    CALL_STATUS = "call_status"
    RECORDING_COMPLETE = "recording_complete"
    WHISPER_TRANSCRIPTION = "whisper_transcription"
    WHISPER_TRANSCRIPTION_FAILED = "whisper_transcription_failed"
    TRANSCRIPTION_RECEIVED = "transcription_received"
    NO_TRANSCRIPT_AVAILABLE = "no_transcript_available"
    CALLBACK_IGNORED = "callback_ignored"
    CALLBACK_UNKNOWN_SESSION = "callback_unknown_session"
    ESCALATION_WORD_DETECTED = "escalation_word_detected"
    SAFE_WORD_DETECTED = "safe_word_detected"
    DISTRESS_CLASSIFICATION = "distress_classification"
    AI_DISTRESS_DETECTED = "ai_distress_detected"
    ESCALATION_TRIGGERED = "escalation_triggered"
    LOCATION_REQUEST_SMS_SENT = "location_request_sms_sent"
    LOCATION_REQUEST_SMS_FAILED = "location_request_sms_failed"
    SMS_SENT = "sms_sent"
    SMS_FAILED = "sms_failed"
    EMERGENCY_CALL_INITIATED = "emergency_call_initiated"
    EMERGENCY_CALL_FAILED = "emergency_call_failed"
    LOCATION_SUBMITTED = "location_submitted"
    LOCATION_UPDATE_SMS_SENT = "location_update_sms_sent"
    LOCATION_UPDATE_SMS_FAILED = "location_update_sms_failed"
    INTERACTION_TIMED_OUT = "interaction_timed_out"
    SESSION_CANCELLED = "session_cancelled"
    SESSION_CLEARED = "session_cleared"
    SESSIONS_CLEARED = "sessions_cleared"


@dataclass(frozen=True)
class EventRecord:
    """Append-only audit log entry."""

    session_id: UUID | None
    event_type: str
    payload: dict[str, object] | None
    created_at: datetime


def replay_status(events: Iterable[EventRecord]) -> SessionStatus | None:
    """Rebuild the latest status of a session from its status_changed events.

    Returns ``pending`` when the history holds only the activation and
    ``None`` when the session was never activated.
    """
    status: SessionStatus | None = None
    for event in sorted(events, key=lambda item: item.created_at):
        if event.event_type == EventType.SESSION_ACTIVATED:
            status = SessionStatus.PENDING
        elif event.event_type == EventType.STATUS_CHANGED and event.payload:
            status = SessionStatus(str(event.payload["to"]))
    return status


def count_events(events: Iterable[EventRecord], event_type: str) -> int:
    """Count events of a given type."""
    return sum(1 for event in events if event.event_type == event_type)


def last_event(events: Iterable[EventRecord], event_type: str) -> EventRecord | None:
    """Return the most recent event of a given type."""
    matching = [event for event in events if event.event_type == event_type]
    if not matching:
        return None
    return max(matching, key=lambda item: item.created_at)
