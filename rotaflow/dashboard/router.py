"""Dashboard router — live server-sent-event feed for admin and manager dashboards."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import require_role
from rotaflow.common.constants import UserRole
from rotaflow.config import settings
from rotaflow.dashboard.service import event_stream
from rotaflow.database import get_session_factory

router = APIRouter(prefix="", tags=["dashboard"])

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ── GET /events ─────────────────────────────────────────────────────

@router.get("/events")
async def dashboard_events(
    request: Request,
    ctx: AccessContext = Depends(require_role(UserRole.manager)),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Stream ``connected``, ``stats``, ``updates`` and ``heartbeat`` events."""
    stream = event_stream(
        request.is_disconnected,
        factory,
        ctx.tenant_id,
        heartbeat_seconds=settings.DASHBOARD_HEARTBEAT_SECONDS,
        refresh_seconds=settings.DASHBOARD_REFRESH_SECONDS,
    )
    return StreamingResponse(stream, media_type="text/event-stream", headers=_STREAM_HEADERS)
