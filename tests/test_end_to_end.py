"""Full check-in flow across scheduler, controller and escalation."""

import asyncio
from datetime import UTC, datetime, timedelta

from guardian_checkin.domain.events import EventType, replay_status
from guardian_checkin.domain.sessions import EmergencyContact, SessionStatus
from guardian_checkin.services.controller import CallbackResult, RecordingCallback
from tests.conftest import SUBJECT_PHONE, make_draft

CONTACT_A = "+15557770001"
CONTACT_B = "+15557770002"


def test_activate_tick_and_escalate(
    scheduler, controller, session_service, store, provider
) -> None:
    session = session_service.activate(
        make_draft(
            scheduled_at=datetime.now(tz=UTC) + timedelta(seconds=1),
            contacts=[
                EmergencyContact(CONTACT_A, is_primary=True, display_order=0),
                EmergencyContact(CONTACT_B, is_primary=False, display_order=1),
            ],
        )
    )
    scheduler.clock = lambda: datetime.now(tz=UTC) + timedelta(seconds=2)

    asyncio.run(scheduler.tick())
    assert store.sessions[session.id].status is SessionStatus.ACTIVE

    asyncio.run(
        controller.handle_recording(
            RecordingCallback(session_id=session.id, transcript="banana, help")
        )
    )

    assert store.sessions[session.id].status is SessionStatus.ESCALATED
    types = store.event_types(session.id)
    assert types.count(EventType.SMS_SENT) == 2
    assert types.count(EventType.EMERGENCY_CALL_INITIATED) == 1
    assert types.count(EventType.LOCATION_REQUEST_SMS_SENT) == 1


def test_escalation_word_with_one_failing_contact(
    scheduler, controller, escalation_ladder, session_service, store, provider
) -> None:
    provider.failing_phones = {CONTACT_A}
    session = session_service.activate(
        make_draft(
            contacts=[
                EmergencyContact(CONTACT_A, is_primary=True, display_order=0),
                EmergencyContact(CONTACT_B, is_primary=False, display_order=1),
            ]
        )
    )

    report = asyncio.run(scheduler.tick())
    assert report.started == [session.id]
    assert store.sessions[session.id].status is SessionStatus.ACTIVE

    result = asyncio.run(
        controller.handle_recording(
            RecordingCallback(
                session_id=session.id,
                transcript="Um... banana",
                recording_id="RE123",
            )
        )
    )
    assert result is CallbackResult.ESCALATED
    assert store.sessions[session.id].status is SessionStatus.ESCALATED

    delivered = [phone for phone, _text in provider.alerts]
    assert delivered == [SUBJECT_PHONE, CONTACT_B]
    assert provider.voice_alerts == [(CONTACT_A, session.id, SUBJECT_PHONE)]

    asyncio.run(escalation_ladder.broadcast_location(session.id, "Library, 2nd floor"))
    assert store.sessions[session.id].status is SessionStatus.ESCALATED

    events = store.list_events(session.id)
    types = [event.event_type for event in events]
    assert types[0] == EventType.SESSION_ACTIVATED
    placed = types.index(EventType.CALL_PLACED)
    assert placed < types.index(EventType.ESCALATION_TRIGGERED)
    assert types.count(EventType.SMS_FAILED) == 1
    assert types.count(EventType.SMS_SENT) == 1
    assert types.count(EventType.LOCATION_UPDATE_SMS_SENT) == 1
    assert replay_status(events) is SessionStatus.ESCALATED
