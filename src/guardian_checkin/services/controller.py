"""Callback-driven session controller."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID

from guardian_checkin.domain.classification import ResponseOutcome
from guardian_checkin.domain.events import EventType
from guardian_checkin.domain.scripts import InteractionScript
from guardian_checkin.domain.sessions import Session, SessionStatus
from guardian_checkin.services.analyzer import analyze_response
from guardian_checkin.services.classifier import DistressClassifier
from guardian_checkin.services.escalation import EscalationLadder
from guardian_checkin.services.sessions import SessionService

_logger = logging.getLogger(__name__)


class Transcriber(Protocol):
    """Fallback speech-to-text for recordings the provider did not transcribe."""

    async def transcribe(self, recording_url: str) -> str:
        """Download a recording and return its text."""


class CallbackResult(str, Enum):
    """What a recording callback did to its session."""

    IGNORED = "ignored"
    COMPLETED = "completed"
    ESCALATED = "escalated"


@dataclass(frozen=True)
class RecordingCallback:
    """Payload of a recording-complete callback."""

    session_id: UUID | None
    transcript: str = ""
    recording_id: str | None = None
    recording_url: str | None = None
    transcription_status: str | None = None
    duration_seconds: str | None = None


@dataclass
class SessionController:
    """Reacts to provider callbacks for active sessions."""

    sessions: SessionService
    classifier: DistressClassifier
    escalation: EscalationLadder
    transcriber: Transcriber | None = None

    def interaction_script(self, session_id: UUID | None) -> InteractionScript | None:
        """Return the script for an answered check-in call."""
        if session_id is None:
            _logger.warning("Answered callback without a session id")
            return None
        session = self.sessions.store.get_session(session_id)
        if session is None:
            _logger.warning("Answered callback for unknown session %s", session_id)
            return None
        return InteractionScript(session_id=session.id)

    def handle_status_update(
        self, session_id: UUID | None, payload: dict[str, object]
    ) -> None:
        """Log call lifecycle telemetry."""
        if session_id is None:
            return
        if self.sessions.store.get_session(session_id) is None:
            _logger.warning("Status callback for unknown session %s", session_id)
            self.sessions.record(
                None,
                EventType.CALLBACK_UNKNOWN_SESSION,
                {"session_id": str(session_id), **payload},
            )
            return
        self.sessions.record(session_id, EventType.CALL_STATUS, payload)

    async def handle_recording(self, callback: RecordingCallback) -> CallbackResult:
        """Interpret a recorded response and close or escalate the session."""
        session = self._resolve(callback)
        if session is None:
            return CallbackResult.IGNORED

        if callback.recording_id:
            self.sessions.record(
                session.id,
                EventType.RECORDING_COMPLETE,
                {
                    "recording_id": callback.recording_id,
                    "duration": callback.duration_seconds,
                    "transcription_status": callback.transcription_status,
                },
            )

        if not self._still_active(session, callback.recording_id):
            return CallbackResult.IGNORED

        transcript = callback.transcript.strip()
        if not transcript and callback.recording_url:
            transcript = await self._fallback_transcript(
                session, callback.recording_url
            )
            if not self._still_active(session, callback.recording_id):
                return CallbackResult.IGNORED

        if not transcript:
            _logger.warning("No transcript available for session %s", session.id)
            self.sessions.record(session.id, EventType.NO_TRANSCRIPT_AVAILABLE, {})
            self.sessions.transition(session, SessionStatus.COMPLETED, "no_transcript")
            return CallbackResult.COMPLETED

        self.sessions.record(
            session.id,
            EventType.TRANSCRIPTION_RECEIVED,
            {"text": transcript, "status": callback.transcription_status},
        )
        return await self._decide(session, transcript)

    async def _decide(self, session: Session, transcript: str) -> CallbackResult:
        outcome = analyze_response(
            transcript, session.safe_word, session.escalation_word
        )

        if outcome is ResponseOutcome.ESCALATE:
            self.sessions.record(
                session.id,
                EventType.ESCALATION_WORD_DETECTED,
                {"transcript": transcript},
            )
            await self.escalation.escalate(session, "escalation_word")
            return CallbackResult.ESCALATED

        if outcome is ResponseOutcome.SAFE:
            self.sessions.record(
                session.id, EventType.SAFE_WORD_DETECTED, {"transcript": transcript}
            )
            self.sessions.transition(session, SessionStatus.COMPLETED, "safe_word")
            return CallbackResult.COMPLETED

        assessment = await self.classifier.classify(transcript)
        self.sessions.record(
            session.id,
            EventType.DISTRESS_CLASSIFICATION,
            {
                "transcript": transcript,
                "probability": assessment.probability,
                "rationale": assessment.rationale,
                "is_distressed": assessment.is_distressed,
                "available": assessment.available,
                "threshold": self.classifier.threshold,
            },
        )
        if not self._still_active(session, None):
            return CallbackResult.IGNORED
        if assessment.is_distressed:
            self.sessions.record(
                session.id,
                EventType.AI_DISTRESS_DETECTED,
                {
                    "probability": assessment.probability,
                    "rationale": assessment.rationale,
                },
            )
            await self.escalation.escalate(session, "classifier_distress")
            return CallbackResult.ESCALATED

        reason = (
            "classifier_not_distressed"
            if assessment.available
            else "classifier_unavailable"
        )
        self.sessions.transition(session, SessionStatus.COMPLETED, reason)
        return CallbackResult.COMPLETED

    def _resolve(self, callback: RecordingCallback) -> Session | None:
        if callback.session_id is None:
            _logger.warning("Recording callback without a session id")
            return None
        session = self.sessions.store.get_session(callback.session_id)
        if session is None:
            _logger.warning(
                "Recording callback for unknown session %s", callback.session_id
            )
            self.sessions.record(
                None,
                EventType.CALLBACK_UNKNOWN_SESSION,
                {
                    "session_id": str(callback.session_id),
                    "recording_id": callback.recording_id,
                },
            )
        return session

    async def _fallback_transcript(self, session: Session, recording_url: str) -> str:
        if self.transcriber is None:
            return ""
        try:
            text = await self.transcriber.transcribe(recording_url)
        except Exception as exc:
            _logger.exception(
                "Fallback transcription failed for session %s", session.id
            )
            self.sessions.record(
                session.id,
                EventType.WHISPER_TRANSCRIPTION_FAILED,
                {"error": str(exc)},
            )
            return ""
        self.sessions.record(
            session.id, EventType.WHISPER_TRANSCRIPTION, {"text": text}
        )
        return text.strip()

    def _still_active(self, session: Session, recording_id: str | None) -> bool:
        """Re-read the session and log an ignored callback unless it is active."""
        current = self.sessions.store.get_session(session.id) or session
        if current.status is SessionStatus.ACTIVE:
            return True
        _logger.info(
            "Ignoring recording for session %s in status %s",
            current.id,
            current.status.value,
        )
        self.sessions.record(
            current.id,
            EventType.CALLBACK_IGNORED,
            {"status": current.status.value, "recording_id": recording_id},
        )
        return False
