"""Tests for the escalation ladder."""

import asyncio
from uuid import uuid4

from guardian_checkin.domain.events import EventType
from guardian_checkin.domain.sessions import EmergencyContact, SessionStatus
from tests.conftest import (
    PRIMARY_PHONE,
    SECONDARY_PHONE,
    SUBJECT_PHONE,
    make_active_session,
)


def test_escalate_runs_every_step(
    escalation_ladder, session_service, store, provider
) -> None:
    session = make_active_session(session_service, location="Corner cafe")

    report = asyncio.run(escalation_ladder.escalate(session, "escalation_word"))

    assert store.sessions[session.id].status is SessionStatus.ESCALATED
    assert report.location_requested
    assert report.contacts.delivered == [PRIMARY_PHONE, SECONDARY_PHONE]
    assert report.voice_alert_to == PRIMARY_PHONE
    destinations = [phone for phone, _text in provider.alerts]
    assert destinations == [SUBJECT_PHONE, PRIMARY_PHONE, SECONDARY_PHONE]
    assert "https://guardian.example.com/location?session_id=" in provider.alerts[0][1]
    assert "GUARDIAN AI DISTRESS ALERT" in provider.alerts[1][1]
    assert "Location: Corner cafe" in provider.alerts[1][1]
    assert provider.voice_alerts == [(PRIMARY_PHONE, session.id, SUBJECT_PHONE)]


def test_escalate_isolates_contact_failures(
    escalation_ladder, session_service, store, provider
) -> None:
    provider.failing_phones = {PRIMARY_PHONE}
    session = make_active_session(session_service)

    report = asyncio.run(escalation_ladder.escalate(session, "classifier_distress"))

    assert report.contacts.delivered == [SECONDARY_PHONE]
    assert PRIMARY_PHONE in report.contacts.failed
    assert report.voice_alert_to == PRIMARY_PHONE
    assert report.voice_alert_error is None
    types = store.event_types(session.id)
    assert EventType.SMS_FAILED in types
    assert EventType.SMS_SENT in types
    assert EventType.EMERGENCY_CALL_INITIATED in types
    assert store.sessions[session.id].status is SessionStatus.ESCALATED


def test_escalation_status_stands_when_every_send_fails(
    escalation_ladder, session_service, store, provider
) -> None:
    provider.failing_phones = {SUBJECT_PHONE, PRIMARY_PHONE, SECONDARY_PHONE}
    provider.fail_voice_alerts = True
    session = make_active_session(session_service)

    report = asyncio.run(escalation_ladder.escalate(session, "escalation_word"))

    assert not report.location_requested
    assert report.contacts.delivered == []
    assert report.voice_alert_error == "Voice alert failed"
    assert store.sessions[session.id].status is SessionStatus.ESCALATED
    types = store.event_types(session.id)
    assert EventType.LOCATION_REQUEST_SMS_FAILED in types
    assert EventType.EMERGENCY_CALL_FAILED in types


def test_primary_falls_back_to_first_contact(
    escalation_ladder, session_service, provider
) -> None:
    session = make_active_session(
        session_service,
        contacts=[
            EmergencyContact("+15550000009", display_order=1),
            EmergencyContact("+15550000008", display_order=0),
        ],
    )

    report = asyncio.run(escalation_ladder.escalate(session, "escalation_word"))

    assert report.voice_alert_to == "+15550000008"
    assert report.contacts.delivered == ["+15550000008", "+15550000009"]


def test_late_location_broadcast_keeps_status(
    escalation_ladder, session_service, store, provider
) -> None:
    session = make_active_session(session_service)
    asyncio.run(escalation_ladder.escalate(session, "escalation_word"))
    provider.alerts.clear()

    report = asyncio.run(
        escalation_ladder.broadcast_location(session.id, " 42 Elm Street ")
    )

    assert report.delivered == [PRIMARY_PHONE, SECONDARY_PHONE]
    assert store.sessions[session.id].status is SessionStatus.ESCALATED
    assert store.sessions[session.id].location == "42 Elm Street"
    assert all("Location: 42 Elm Street" in text for _phone, text in provider.alerts)
    assert EventType.LOCATION_UPDATE_SMS_SENT in store.event_types(session.id)


def test_voice_alert_script_reads_latest_location(
    escalation_ladder, session_service
) -> None:
    session = make_active_session(session_service)
    session_service.update_location(session.id, "Pier 39")

    script = escalation_ladder.voice_alert_script(session.id, "+15551230000")

    assert script.spoken_phone == "1 5 5 5 1 2 3 0 0 0 0"
    assert "Their location is Pier 39." in script.opening
    assert "Goodbye" in script.closing


def test_voice_alert_script_for_unknown_session(escalation_ladder) -> None:
    assert escalation_ladder.voice_alert_script(uuid4(), "+15551230000") is None
