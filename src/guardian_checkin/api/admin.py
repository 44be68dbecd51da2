"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from guardian_checkin.services.sessions import (
    InvalidTransitionError,
    SessionNotFoundError,
)

if TYPE_CHECKING:
    from guardian_checkin.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post("/clear-due", dependencies=[Depends(require_admin)])
async def clear_due(request: Request) -> dict[str, object]:
    """Complete every overdue pending session without calling anyone."""
    container: AppContainer = request.app.state.container
    return {"success": True, "updated": container.admin_service.clear_due()}


@router.get("/diagnostics", dependencies=[Depends(require_admin)])
async def diagnostics(request: Request) -> dict[str, object]:
    """Queue depth, oldest pending item and collaborator reachability."""
    container: AppContainer = request.app.state.container
    return container.admin_service.diagnostics()


@router.post("/sessions/{session_id}/cancel", dependencies=[Depends(require_admin)])
async def cancel_session(session_id: UUID, request: Request) -> dict[str, object]:
    """Cancel a pending or active session."""
    container: AppContainer = request.app.state.container
    try:
        return {"session": container.admin_service.cancel(session_id)}
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        ) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc
