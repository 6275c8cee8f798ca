"""Admin API endpoints with simple token auth."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from party_sessions.domain.sessions import SessionStatus
from party_sessions.services.admin import TransitionRejectedError
from party_sessions.services.sessions import SessionNotFoundError

if TYPE_CHECKING:
    from party_sessions.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


class RegenSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)


class CancelSessionRequest(BaseModel):
    reason: str | None = None


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or not secrets.compare_digest(x_admin_token, admin_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/scheduler", dependencies=[Depends(require_admin)])
async def scheduler_status(request: Request) -> dict[str, object]:
    """Return the number of sessions with pending timers."""
    container: AppContainer = request.app.state.container
    return container.admin_service.scheduler_status()


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(
    request: Request,
    campaign_id: str | None = None,
    session_status: SessionStatus | None = None,
) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    return {
        "sessions": container.admin_service.list_sessions(campaign_id, session_status)
    }


@router.get("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def session_detail(session_id: str, request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    try:
        return container.admin_service.get_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND) from exc


@router.post("/regen-session", dependencies=[Depends(require_admin)])
async def regen_session(
    payload: RegenSessionRequest, request: Request
) -> dict[str, str]:
    """Rebuild the Discord post of a session from stored state."""
    container: AppContainer = request.app.state.container
    try:
        await container.admin_service.regenerate_session(payload.session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND) from exc
    return {"status": "ok", "session_id": payload.session_id}


@router.post("/sessions/{session_id}/cancel", dependencies=[Depends(require_admin)])
async def cancel_session(
    session_id: str,
    request: Request,
    payload: CancelSessionRequest | None = None,
) -> dict[str, str]:
    container: AppContainer = request.app.state.container
    reason = payload.reason if payload else None
    try:
        await container.admin_service.cancel_session(session_id, reason)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND) from exc
    except TransitionRejectedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {"status": SessionStatus.CANCELED.value, "session_id": session_id}


@router.post("/sessions/{session_id}/end", dependencies=[Depends(require_admin)])
async def end_session(session_id: str, request: Request) -> dict[str, str]:
    container: AppContainer = request.app.state.container
    try:
        await container.admin_service.end_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND) from exc
    except TransitionRejectedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {"status": SessionStatus.COMPLETED.value, "session_id": session_id}
