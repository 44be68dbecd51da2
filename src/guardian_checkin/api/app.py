"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse

from guardian_checkin.api.admin import router as admin_router
from guardian_checkin.api.models import (
    ActivateRequest,
    ActivateResponse,
    LocationRequest,
)
from guardian_checkin.api.webhooks import router as webhook_router
from guardian_checkin.app_logging import configure_logging
from guardian_checkin.config import is_public_url
from guardian_checkin.containers import AppContainer
from guardian_checkin.domain.events import EventRecord
from guardian_checkin.domain.sessions import Session
from guardian_checkin.services.scheduler import SessionNotPendingError
from guardian_checkin.services.sessions import (
    InvalidLocationError,
    SessionNotFoundError,
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = app.state.container.settings
        if not is_public_url(settings.public_base_url):
            logger.warning(
                "PUBLIC_BASE_URL is %s; calls will fail when answered because "
                "the provider cannot reach the webhooks",
                settings.public_base_url,
            )
        scheduler_task: asyncio.Task | None = None
        if settings.scheduler_enabled:
            scheduler_task = asyncio.create_task(
                app.state.container.scheduler.run_forever()
            )
        yield
        if scheduler_task is not None:
            scheduler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await scheduler_task
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)
    app.include_router(webhook_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/activate", status_code=status.HTTP_201_CREATED)
    async def activate(body: ActivateRequest, request: Request) -> ActivateResponse:
        """Schedule a check-in call."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_service.activate(body.to_draft())
        return ActivateResponse(
            session_id=session.id,
            scheduled_at=session.scheduled_at,
            message=f"Check-in call scheduled for {session.scheduled_at.isoformat()}",
        )

    @app.get("/api/sessions/{session_id}")
    async def get_session(session_id: UUID, request: Request) -> dict[str, object]:
        """Return a session with its contacts."""
        state_container: AppContainer = request.app.state.container
        try:
            session = state_container.session_service.get(session_id)
        except SessionNotFoundError as exc:
            raise _not_found() from exc
        return _serialize_session(session)

    @app.get("/api/sessions/{session_id}/events")
    async def list_events(session_id: UUID, request: Request) -> dict[str, object]:
        """Return the audit log of a session."""
        state_container: AppContainer = request.app.state.container
        try:
            events = state_container.session_service.events(session_id)
        except SessionNotFoundError as exc:
            raise _not_found() from exc
        return {"events": [_serialize_event(event) for event in events]}

    @app.post("/api/sessions/{session_id}/call-now")
    async def call_now(session_id: UUID, request: Request) -> dict[str, object]:
        """Start the check-in call immediately instead of waiting for the scheduler."""
        state_container: AppContainer = request.app.state.container
        try:
            interaction_id = await state_container.scheduler.call_now(session_id)
        except SessionNotFoundError as exc:
            raise _not_found() from exc
        except SessionNotPendingError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        if interaction_id is None:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to initiate call; the scheduler will retry",
            )
        return {"success": True, "call_sid": interaction_id}

    @app.post("/api/send-location")
    async def send_location(
        body: LocationRequest, request: Request
    ) -> dict[str, object]:
        """Store a submitted location and forward it to every contact."""
        state_container: AppContainer = request.app.state.container
        try:
            report = await state_container.escalation_ladder.broadcast_location(
                body.session_id, body.location
            )
        except SessionNotFoundError as exc:
            raise _not_found() from exc
        except InvalidLocationError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        logger.info(
            "Location broadcast: session_id=%s delivered=%s failed=%s",
            body.session_id,
            len(report.delivered),
            len(report.failed),
        )
        return {
            "success": True,
            "location": body.location.strip(),
            "delivered": report.delivered,
            "failed": report.failed,
        }

    @app.get("/location", response_class=HTMLResponse)
    async def location_form() -> HTMLResponse:
        """Minimal form the subject opens from the location request text."""
        return HTMLResponse(_LOCATION_FORM_HTML)

    return app


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
    )


def _serialize_session(session: Session) -> dict[str, object]:
    return {
        "id": str(session.id),
        "user_phone": session.user_phone,
        "status": session.status.value,
        "scheduled_at": session.scheduled_at.isoformat(),
        "location": session.location,
        "contacts": [
            {
                "phone_number": contact.phone_number,
                "is_primary": contact.is_primary,
                "display_order": contact.display_order,
            }
            for contact in session.contacts
        ],
        "created_at": session.created_at.isoformat() if session.created_at else None,
        "updated_at": session.updated_at.isoformat() if session.updated_at else None,
    }


def _serialize_event(event: EventRecord) -> dict[str, object]:
    return {
        "event_type": event.event_type,
        "payload": event.payload,
        "created_at": event.created_at.isoformat(),
    }


_LOCATION_FORM_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Guardian AI - Share your location</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem; }
      textarea { width: 100%; max-width: 480px; height: 6rem; }
      button { padding: 0.6rem 1rem; margin-top: 0.5rem; }
    </style>
  </head>
  <body>
    <h1>Share your location</h1>
    <p>Your emergency contacts will receive it right away.</p>
    <textarea id="location" maxlength="500"
      placeholder="Address, landmark or coordinates"></textarea><br />
    <button onclick="useGps()">Use my GPS</button>
    <button onclick="submitLocation()">Send</button>
    <p id="output"></p>
    <script>
      const sessionId = new URLSearchParams(window.location.search).get('session_id');
      function useGps() {
        navigator.geolocation.getCurrentPosition((pos) => {
          document.getElementById('location').value =
            pos.coords.latitude.toFixed(5) + ', ' + pos.coords.longitude.toFixed(5);
        });
      }
      async function submitLocation() {
        const output = document.getElementById('output');
        const location = document.getElementById('location').value.trim();
        const res = await fetch('/api/send-location', {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({ session_id: sessionId, location })
        });
        output.textContent = res.ok
          ? 'Location sent. Stay safe.'
          : 'Error: ' + res.status;
      }
    </script>
  </body>
</html>
"""
