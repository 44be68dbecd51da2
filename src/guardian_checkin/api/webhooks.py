"""Telephony provider webhooks.

Every handler answers quickly with TwiML or 200 so the provider never
retries a callback the core has already decided to ignore.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlencode
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from twilio.request_validator import RequestValidator

from guardian_checkin.api.twiml import (
    render_hangup,
    render_interaction,
    render_message,
    render_voice_alert,
    twiml_response,
)
from guardian_checkin.services.controller import RecordingCallback

if TYPE_CHECKING:
    from guardian_checkin.containers import AppContainer

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


async def _form_params(request: Request) -> dict[str, str]:
    if request.method != "POST":
        return {}
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


async def require_twilio_signature(request: Request) -> None:
    """Reject requests whose X-Twilio-Signature does not match."""
    container: AppContainer = request.app.state.container
    settings = container.settings
    if not settings.twilio_validate_signatures:
        return
    signature = request.headers.get("x-twilio-signature", "")
    protocol = request.headers.get("x-forwarded-proto", request.url.scheme)
    host = request.headers.get("x-forwarded-host") or request.headers.get(
        "host", request.url.netloc
    )
    url = f"{protocol}://{host}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    params = await _form_params(request)
    validator = RequestValidator(settings.twilio_auth_token)
    if not signature or not validator.validate(url, params, signature):
        _logger.warning(
            "Rejected webhook with invalid signature: path=%s", request.url.path
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)


def _session_id(request: Request, params: dict[str, str]) -> UUID | None:
    raw = request.query_params.get("session_id") or params.get("session_id")
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        _logger.warning("Webhook with malformed session id: %s", raw)
        return None


@router.get("/ping")
async def ping(request: Request) -> dict[str, object]:
    """Unauthenticated reachability check for the public base URL."""
    container: AppContainer = request.app.state.container
    return {
        "ok": True,
        "message": "Webhook server is reachable.",
        "public_base_url": container.settings.public_base_url,
    }


@router.api_route(
    "/voice",
    methods=["GET", "POST"],
    dependencies=[Depends(require_twilio_signature)],
)
async def voice(request: Request) -> Response:
    """Answered check-in call: greet, record and transcribe."""
    container: AppContainer = request.app.state.container
    params = await _form_params(request)
    session_id = _session_id(request, params)
    if session_id is None:
        return twiml_response(render_message("Error: missing session"), status_code=400)
    script = container.session_controller.interaction_script(session_id)
    if script is None:
        return twiml_response(
            render_message("Error: session not found"), status_code=404
        )
    base = container.settings.public_base_url.rstrip("/")
    query = urlencode({"session_id": str(script.session_id)})
    action_url = f"{base}/api/webhooks/recording-complete?{query}"
    return twiml_response(render_interaction(script, action_url))


@router.api_route(
    "/recording-complete",
    methods=["GET", "POST"],
    dependencies=[Depends(require_twilio_signature)],
)
async def recording_complete(request: Request) -> Response:
    """Recording finished: interpret the response, then hang up."""
    container: AppContainer = request.app.state.container
    params = await _form_params(request)
    callback = RecordingCallback(
        session_id=_session_id(request, params),
        transcript=params.get("TranscriptionText", ""),
        recording_id=params.get("RecordingSid"),
        recording_url=params.get("RecordingUrl"),
        transcription_status=params.get("TranscriptionStatus"),
        duration_seconds=params.get("RecordingDuration"),
    )
    try:
        result = await container.session_controller.handle_recording(callback)
    except Exception:
        _logger.exception(
            "Recording callback failed: session_id=%s", callback.session_id
        )
    else:
        _logger.info(
            "Recording callback handled: session_id=%s result=%s",
            callback.session_id,
            result.value,
        )
    return twiml_response(render_hangup())


@router.post("/call-status", dependencies=[Depends(require_twilio_signature)])
async def call_status(request: Request) -> Response:
    """Call lifecycle telemetry."""
    container: AppContainer = request.app.state.container
    params = await _form_params(request)
    session_id = _session_id(request, params)
    try:
        container.session_controller.handle_status_update(
            session_id,
            {
                "call_status": params.get("CallStatus"),
                "call_sid": params.get("CallSid"),
            },
        )
    except Exception:
        _logger.exception("Status callback failed: session_id=%s", session_id)
    return Response(status_code=status.HTTP_200_OK)


@router.api_route(
    "/voice-alert",
    methods=["GET", "POST"],
    dependencies=[Depends(require_twilio_signature)],
)
async def voice_alert(request: Request) -> Response:
    """Script for the Level 2 call to the primary contact."""
    container: AppContainer = request.app.state.container
    params = await _form_params(request)
    subject_phone = request.query_params.get("subject_phone") or params.get(
        "subject_phone"
    )
    if not subject_phone:
        return twiml_response(render_message("Error: missing phone"), status_code=400)
    session_id = _session_id(request, params)
    if session_id is None:
        return twiml_response(render_message("Error: missing session"), status_code=400)
    script = container.escalation_ladder.voice_alert_script(session_id, subject_phone)
    if script is None:
        return twiml_response(
            render_message("Error: session not found"), status_code=404
        )
    _logger.info("Voice alert script served: session_id=%s", session_id)
    return twiml_response(render_voice_alert(script))
