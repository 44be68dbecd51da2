"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from guardian_checkin.adapters.openai_distress_client import OpenAIDistressClient
from guardian_checkin.adapters.supabase_session_store import SupabaseSessionStore
from guardian_checkin.adapters.twilio_provider import TwilioNotificationProvider
from guardian_checkin.adapters.whisper_transcriber import WhisperTranscriber
from guardian_checkin.config import Settings
from guardian_checkin.services.admin import AdminService
from guardian_checkin.services.classifier import DistressClassifier
from guardian_checkin.services.controller import SessionController
from guardian_checkin.services.escalation import EscalationLadder
from guardian_checkin.services.notifications import NotificationProvider
from guardian_checkin.services.scheduler import DueSessionScheduler
from guardian_checkin.services.sessions import SessionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    provider: NotificationProvider
    session_service: SessionService
    escalation_ladder: EscalationLadder
    session_controller: SessionController
    scheduler: DueSessionScheduler
    admin_service: AdminService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_service = SessionService(SupabaseSessionStore(supabase_client))
    provider = TwilioNotificationProvider.create(
        account_sid=resolved_settings.twilio_account_sid,
        auth_token=resolved_settings.twilio_auth_token,
        from_number=resolved_settings.twilio_phone_number,
        public_base_url=resolved_settings.public_base_url,
    )
    classifier = DistressClassifier(
        client=OpenAIDistressClient.create(resolved_settings.openai_api_key),
        model=resolved_settings.openai_model,
        threshold=resolved_settings.distress_threshold,
        fail_open=resolved_settings.classifier_fail_open,
    )
    transcriber = WhisperTranscriber.create(
        api_key=resolved_settings.openai_api_key,
        account_sid=resolved_settings.twilio_account_sid,
        auth_token=resolved_settings.twilio_auth_token,
        model=resolved_settings.openai_transcription_model,
    )
    escalation_ladder = EscalationLadder(
        sessions=session_service,
        provider=provider,
        public_base_url=resolved_settings.public_base_url,
    )
    session_controller = SessionController(
        sessions=session_service,
        classifier=classifier,
        escalation=escalation_ladder,
        transcriber=transcriber,
    )
    scheduler = DueSessionScheduler(
        sessions=session_service,
        provider=provider,
        interval_seconds=resolved_settings.scheduler_interval_seconds,
        max_initiation_attempts=resolved_settings.max_initiation_attempts,
        initiation_backoff_seconds=resolved_settings.initiation_backoff_seconds,
        active_timeout_seconds=resolved_settings.active_timeout_seconds,
    )
    admin_service = AdminService(
        sessions=session_service,
        provider_configured=bool(
            resolved_settings.twilio_account_sid
            and resolved_settings.twilio_auth_token
            and resolved_settings.twilio_phone_number
        ),
        classifier_configured=bool(resolved_settings.openai_api_key),
        public_base_url=resolved_settings.public_base_url,
    )

    async def close_resources() -> None:
        await transcriber.close()

    return AppContainer(
        settings=resolved_settings,
        provider=provider,
        session_service=session_service,
        escalation_ladder=escalation_ladder,
        session_controller=session_controller,
        scheduler=scheduler,
        admin_service=admin_service,
        close_resources=close_resources,
    )
