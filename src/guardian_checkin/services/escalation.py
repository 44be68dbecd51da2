"""Escalation ladder: location request, contact alerts and the primary call."""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlencode
from uuid import UUID

from guardian_checkin.domain.events import EventType
from guardian_checkin.domain.scripts import VoiceAlertScript, spell_digits
from guardian_checkin.domain.sessions import (
    Session,
    SessionStatus,
    ordered_contacts,
    resolve_primary_contact,
)
from guardian_checkin.services.notifications import (
    NotificationProvider,
    distress_alert_message,
    location_request_message,
    location_update_message,
)
from guardian_checkin.services.sessions import SessionService

_logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    """Outcome of a fan-out, keyed by destination phone number."""

    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass
class EscalationReport:
    """Outcome of a full escalation run."""

    session_id: UUID
    location_requested: bool
    contacts: DeliveryReport
    voice_alert_to: str | None
    voice_alert_error: str | None = None


@dataclass
class EscalationLadder:
    """Runs the failure-isolated notification sequence for a distressed session."""

    sessions: SessionService
    provider: NotificationProvider
    public_base_url: str

    async def escalate(self, session: Session, reason: str) -> EscalationReport:
        """Mark the session escalated, then notify everyone who needs to know.

        The status change happens first and stands even if every send fails.
        Each send is attempted regardless of the others.
        """
        escalated = self.sessions.transition(session, SessionStatus.ESCALATED, reason)
        self.sessions.record(
            escalated.id,
            EventType.ESCALATION_TRIGGERED,
            {
                "user_phone": escalated.user_phone,
                "location": escalated.location,
                "reason": reason,
            },
        )
        _logger.warning(
            "Escalation triggered: session_id=%s reason=%s", escalated.id, reason
        )

        location_requested = await self._request_location(escalated)
        contacts = await self._alert_contacts(escalated)
        voice_alert_to, voice_alert_error = await self._call_primary(escalated)

        _logger.info(
            "Escalation complete: session_id=%s delivered=%s failed=%s voice_alert=%s",
            escalated.id,
            len(contacts.delivered),
            len(contacts.failed),
            voice_alert_to if voice_alert_error is None else "failed",
        )
        return EscalationReport(
            session_id=escalated.id,
            location_requested=location_requested,
            contacts=contacts,
            voice_alert_to=voice_alert_to,
            voice_alert_error=voice_alert_error,
        )

    async def broadcast_location(
        self, session_id: UUID, location: str
    ) -> DeliveryReport:
        """Persist a late location and send it to every contact.

        Does not touch the session status; repeated calls send repeated
        broadcasts.
        """
        session = self.sessions.update_location(session_id, location)
        text = location_update_message(session.user_phone, session.location or "")
        return await self._fan_out(
            session,
            text,
            sent_event=EventType.LOCATION_UPDATE_SMS_SENT,
            failed_event=EventType.LOCATION_UPDATE_SMS_FAILED,
            extra={"location": session.location},
        )

    def voice_alert_script(
        self, session_id: UUID, subject_phone: str
    ) -> VoiceAlertScript | None:
        """Build the script for the primary contact call with the latest location."""
        session = self.sessions.store.get_session(session_id)
        if session is None:
            _logger.warning("Voice alert requested for unknown session %s", session_id)
            return None
        return VoiceAlertScript(
            spoken_phone=spell_digits(subject_phone), location=session.location
        )

    def location_url(self, session_id: UUID) -> str:
        """Public link to the location form for a session."""
        query = urlencode({"session_id": str(session_id)})
        return f"{self.public_base_url.rstrip('/')}/location?{query}"

    async def _request_location(self, session: Session) -> bool:
        text = location_request_message(self.location_url(session.id))
        try:
            await self.provider.send_alert(session.user_phone, text)
        except Exception as exc:
            _logger.warning(
                "Location request failed: session_id=%s error=%s", session.id, exc
            )
            self.sessions.record(
                session.id,
                EventType.LOCATION_REQUEST_SMS_FAILED,
                {"to": session.user_phone, "error": str(exc)},
            )
            return False
        self.sessions.record(
            session.id,
            EventType.LOCATION_REQUEST_SMS_SENT,
            {"to": session.user_phone},
        )
        return True

    async def _alert_contacts(self, session: Session) -> DeliveryReport:
        text = distress_alert_message(session.user_phone, session.location)
        return await self._fan_out(
            session,
            text,
            sent_event=EventType.SMS_SENT,
            failed_event=EventType.SMS_FAILED,
        )

    async def _fan_out(
        self,
        session: Session,
        text: str,
        *,
        sent_event: str,
        failed_event: str,
        extra: dict[str, object] | None = None,
    ) -> DeliveryReport:
        report = DeliveryReport()
        for contact in ordered_contacts(session.contacts):
            payload: dict[str, object] = {
                "to": contact.phone_number,
                "is_primary": contact.is_primary,
            }
            payload.update(extra or {})
            try:
                await self.provider.send_alert(contact.phone_number, text)
            except Exception as exc:
                _logger.warning(
                    "Alert to %s failed: session_id=%s error=%s",
                    contact.phone_number,
                    session.id,
                    exc,
                )
                payload["error"] = str(exc)
                self.sessions.record(session.id, failed_event, payload)
                report.failed[contact.phone_number] = str(exc)
                continue
            self.sessions.record(session.id, sent_event, payload)
            report.delivered.append(contact.phone_number)
        return report

    async def _call_primary(self, session: Session) -> tuple[str | None, str | None]:
        primary = resolve_primary_contact(session.contacts)
        if primary is None:
            return None, None
        try:
            await self.provider.start_voice_alert(
                primary.phone_number, session.id, session.user_phone
            )
        except Exception as exc:
            _logger.warning(
                "Voice alert to %s failed: session_id=%s error=%s",
                primary.phone_number,
                session.id,
                exc,
            )
            self.sessions.record(
                session.id,
                EventType.EMERGENCY_CALL_FAILED,
                {"to": primary.phone_number, "error": str(exc)},
            )
            return primary.phone_number, str(exc)
        self.sessions.record(
            session.id,
            EventType.EMERGENCY_CALL_INITIATED,
            {"to": primary.phone_number, "location": session.location},
        )
        return primary.phone_number, None
