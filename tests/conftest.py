"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from guardian_checkin.config import Settings
from guardian_checkin.containers import AppContainer
from guardian_checkin.domain.events import EventRecord
from guardian_checkin.domain.sessions import (
    EmergencyContact,
    Session,
    SessionDraft,
    SessionStatus,
)
from guardian_checkin.services.admin import AdminService
from guardian_checkin.services.classifier import DistressClassifier, DistressClient
from guardian_checkin.services.controller import SessionController, Transcriber
from guardian_checkin.services.escalation import EscalationLadder
from guardian_checkin.services.notifications import NotificationProvider, ProviderError
from guardian_checkin.services.scheduler import DueSessionScheduler
from guardian_checkin.services.sessions import SessionService, SessionStore

SUBJECT_PHONE = "+15551230000"
PRIMARY_PHONE = "+15551230001"
SECONDARY_PHONE = "+15551230002"


@dataclass
class InMemorySessionStore(SessionStore):
    """In-memory session store for tests."""

    sessions: dict[UUID, Session] = field(default_factory=dict)
    events: list[EventRecord] = field(default_factory=list)
    status_updates: list[tuple[UUID, SessionStatus]] = field(default_factory=list)

    def create_session(self, draft: SessionDraft) -> Session:
        now = datetime.now(tz=UTC)
        session = Session(
            id=uuid4(),
            user_phone=draft.user_phone,
            safe_word=draft.safe_word,
            escalation_word=draft.escalation_word,
            scheduled_at=draft.scheduled_at,
            status=SessionStatus.PENDING,
            location=draft.location,
            contacts=tuple(draft.contacts),
            created_at=now,
            updated_at=now,
        )
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> Session | None:
        return self.sessions.get(session_id)

    def update_status(self, session_id: UUID, status: SessionStatus) -> None:
        self.status_updates.append((session_id, status))
        self.sessions[session_id] = replace(
            self.sessions[session_id],
            status=status,
            updated_at=datetime.now(tz=UTC),
        )

    def update_location(self, session_id: UUID, location: str) -> None:
        self.sessions[session_id] = replace(
            self.sessions[session_id], location=location
        )

    def append_event(
        self,
        session_id: UUID | None,
        event_type: str,
        payload: dict[str, object] | None = None,
    ) -> None:
        self.events.append(
            EventRecord(
                session_id=session_id,
                event_type=event_type,
                payload=payload,
                created_at=datetime.now(tz=UTC),
            )
        )

    def list_pending(self) -> list[Session]:
        pending = [
            session
            for session in self.sessions.values()
            if session.status is SessionStatus.PENDING
        ]
        return sorted(pending, key=lambda session: session.scheduled_at)

    def list_active(self) -> list[Session]:
        return [
            session
            for session in self.sessions.values()
            if session.status is SessionStatus.ACTIVE
        ]

    def list_events(self, session_id: UUID) -> list[EventRecord]:
        return [event for event in self.events if event.session_id == session_id]

    def event_types(self, session_id: UUID | None) -> list[str]:
        return [
            event.event_type for event in self.events if event.session_id == session_id
        ]


@dataclass
class StrictSessionStore(InMemorySessionStore):
    """In-memory store that rejects event writes the way the database does."""

    rejected_events: set[tuple[UUID, str]] = field(default_factory=set)

    def append_event(
        self,
        session_id: UUID | None,
        event_type: str,
        payload: dict[str, object] | None = None,
    ) -> None:
        if session_id is not None and session_id not in self.sessions:
            raise RuntimeError(
                f"insert on event_log violates foreign key: session {session_id}"
            )
        if (session_id, event_type) in self.rejected_events:
            raise RuntimeError(f"Failed to insert {event_type} event")
        super().append_event(session_id, event_type, payload)


@dataclass
class FakeNotificationProvider(NotificationProvider):
    """Fake provider that records every outbound request."""

    calls: list[tuple[str, UUID]] = field(default_factory=list)
    alerts: list[tuple[str, str]] = field(default_factory=list)
    voice_alerts: list[tuple[str, UUID, str]] = field(default_factory=list)
    failing_phones: set[str] = field(default_factory=set)
    fail_interactions: bool = False
    fail_voice_alerts: bool = False
    gate: asyncio.Event | None = None
    dialing: asyncio.Event | None = None

    async def start_interaction(self, phone: str, session_id: UUID) -> str:
        if self.dialing is not None:
            self.dialing.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_interactions:
            raise ProviderError("The number is unverified", status_code=21219)
        self.calls.append((phone, session_id))
        return f"CA{len(self.calls):04d}"

    async def send_alert(self, phone: str, text: str) -> str:
        if phone in self.failing_phones:
            raise ProviderError(f"Cannot deliver to {phone}", status_code=21610)
        self.alerts.append((phone, text))
        return f"SM{len(self.alerts):04d}"

    async def start_voice_alert(
        self, phone: str, session_id: UUID, subject_phone: str
    ) -> str:
        if self.fail_voice_alerts:
            raise ProviderError("Voice alert failed", status_code=500)
        self.voice_alerts.append((phone, session_id, subject_phone))
        return f"CA-alert-{len(self.voice_alerts):04d}"


@dataclass
class FakeDistressClient(DistressClient):
    """Fake distress model returning a fixed payload."""

    payload: dict[str, object] = field(
        default_factory=lambda: {"score": 0.1, "reason": "calm"}
    )
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def score(self, *, model: str, prompt: str, text: str) -> dict[str, object]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.payload


@dataclass
class FakeTranscriber(Transcriber):
    """Fake fallback transcriber."""

    text: str = ""
    error: Exception | None = None
    urls: list[str] = field(default_factory=list)

    async def transcribe(self, recording_url: str) -> str:
        self.urls.append(recording_url)
        if self.error is not None:
            raise self.error
        return self.text


def make_draft(
    *,
    scheduled_at: datetime | None = None,
    contacts: list[EmergencyContact] | None = None,
    location: str | None = None,
) -> SessionDraft:
    return SessionDraft(
        user_phone=SUBJECT_PHONE,
        safe_word="pineapple",
        escalation_word="banana",
        scheduled_at=scheduled_at or datetime.now(tz=UTC) - timedelta(seconds=1),
        location=location,
        contacts=contacts
        if contacts is not None
        else [
            EmergencyContact(PRIMARY_PHONE, is_primary=True, display_order=0),
            EmergencyContact(SECONDARY_PHONE, is_primary=False, display_order=1),
        ],
    )


def make_active_session(service: SessionService, **kwargs: object) -> Session:
    session = service.activate(make_draft(**kwargs))  # type: ignore[arg-type]
    return service.transition(session, SessionStatus.ACTIVE, "test_setup")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        twilio_account_sid="AC123",
        twilio_auth_token="twilio-token",
        twilio_phone_number="+15550000000",
        twilio_validate_signatures=False,
        public_base_url="https://guardian.example.com",
        openai_api_key="openai-key",
        scheduler_enabled=False,
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def provider() -> FakeNotificationProvider:
    return FakeNotificationProvider()


@pytest.fixture
def distress_client() -> FakeDistressClient:
    return FakeDistressClient()


@pytest.fixture
def session_service(store: InMemorySessionStore) -> SessionService:
    return SessionService(store)


@pytest.fixture
def escalation_ladder(
    session_service: SessionService, provider: FakeNotificationProvider
) -> EscalationLadder:
    return EscalationLadder(
        sessions=session_service,
        provider=provider,
        public_base_url="https://guardian.example.com",
    )


@pytest.fixture
def controller(
    session_service: SessionService,
    distress_client: FakeDistressClient,
    escalation_ladder: EscalationLadder,
) -> SessionController:
    return SessionController(
        sessions=session_service,
        classifier=DistressClassifier(client=distress_client, model="gpt-4o-mini"),
        escalation=escalation_ladder,
    )


@pytest.fixture
def scheduler(
    session_service: SessionService, provider: FakeNotificationProvider
) -> DueSessionScheduler:
    return DueSessionScheduler(sessions=session_service, provider=provider)


@pytest.fixture
def container(
    settings: Settings,
    provider: FakeNotificationProvider,
    session_service: SessionService,
    escalation_ladder: EscalationLadder,
    controller: SessionController,
    scheduler: DueSessionScheduler,
) -> AppContainer:
    admin_service = AdminService(
        sessions=session_service,
        provider_configured=True,
        classifier_configured=True,
        public_base_url=settings.public_base_url,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        provider=provider,
        session_service=session_service,
        escalation_ladder=escalation_ladder,
        session_controller=controller,
        scheduler=scheduler,
        admin_service=admin_service,
        close_resources=close_resources,
    )
