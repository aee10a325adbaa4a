"""In-app notification inbox for the calling employee.

Rows are written by the outbox after scheduling, time and approval changes
commit; these endpoints only read them and flip their read flag.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import get_access_context
from rotaflow.common.constants import NotificationType
from rotaflow.common.pagination import PaginationParams
from rotaflow.database import get_db
from rotaflow.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
)
from rotaflow.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── Inbox ───────────────────────────────────────────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Only read (true) or unread (false) rows"),
    type: Optional[NotificationType] = Query(
        default=None, alias="type", description="e.g. shifts_published, action_required"
    ),
    pagination: PaginationParams = Depends(),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Newest first, within the caller's tenant."""
    return await NotificationService.get_notifications(
        db,
        tenant_id=ctx.tenant_id,
        employee_id=ctx.user_id,
        pagination=pagination,
        is_read=is_read,
        notification_type=type,
    )


@router.get("/unread-count")
async def unread_count(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, ctx.tenant_id, ctx.user_id)
    return {"success": True, "data": {"count": count}}


# ── Read state ──────────────────────────────────────────────────────

@router.put("/read-all")
async def mark_all_read(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Clear the caller's unread badge; returns how many rows changed."""
    count = await NotificationService.mark_all_read(db, ctx.tenant_id, ctx.user_id)
    return {"success": True, "message": "All notifications marked as read", "data": {"count": count}}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """403 when the notification belongs to someone else."""
    notification = await NotificationService.mark_read(db, notification_id, ctx.user_id)
    return {
        "success": True,
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }
