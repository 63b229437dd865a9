"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from ussd_voting.containers import AppContainer

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
async def admin_health(request: Request) -> dict[str, object]:
    """Admin health check with the number of sessions currently locked."""
    container: AppContainer = request.app.state.container
    return {"status": "ok", "locked_sessions": container.session_locks.active()}


@router.get("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def session_detail(session_id: str, request: Request) -> dict[str, object]:
    """Return a stored session as persisted."""
    container: AppContainer = request.app.state.container
    session = container.session_service.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return session.to_payload()


@router.delete("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def delete_session(session_id: str, request: Request) -> dict[str, str]:
    """Drop a stored session so the next dial starts fresh."""
    container: AppContainer = request.app.state.container
    container.session_service.delete_session(session_id)
    return {"status": "deleted"}
