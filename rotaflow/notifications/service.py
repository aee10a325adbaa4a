"""Notification service — sink operations and cross-module event helpers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.common.constants import CURRENCY_SYMBOL, NotificationType
from rotaflow.common.exceptions import ForbiddenException, NotFoundException
from rotaflow.common.pagination import PaginationParams, paginate
from rotaflow.notifications.models import Notification
from rotaflow.notifications.outbox import NotificationEvent, record_event
from rotaflow.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

SCHEDULE_URL = "/employee/scheduling"
SHIFT_APPROVALS_URL = "/admin/shift-approvals"
LEAVE_URL = "/employee/requests"


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            tenant_id=tenant_id,
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an employee, newest first."""
        query = (
            select(Notification)
            .where(
                Notification.tenant_id == tenant_id,
                Notification.recipient_id == employee_id,
            )
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        rows, meta = await paginate(db, query, pagination)

        # Unread count (always unfiltered: for the badge)
        unread = await NotificationService.get_unread_count(db, tenant_id, employee_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalars().first()

        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.tenant_id == tenant_id,
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.tenant_id == tenant_id,
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Cross-module event helpers ──────────────────────────────────────
# Imported by scheduling / timekeeping / approvals services. They only
# record events on the session outbox; delivery happens after commit.


def notify_shifts_published(db: AsyncSession, tenant_id: uuid.UUID, employee_id: uuid.UUID) -> None:
    record_event(db, NotificationEvent(
        tenant_id=tenant_id,
        recipient_id=employee_id,
        type=NotificationType.shifts_published,
        title="Shifts Published",
        message="Your shift assignments have been published and are now visible.",
        action_url=SCHEDULE_URL,
    ))


def notify_shift_updated(db: AsyncSession, assignment, *, shift_name: str, emergency: bool) -> None:
    """Tell the employee a published shift changed; emergency mode escalates wording."""
    when = assignment.date.isoformat()
    if emergency:
        title = "URGENT: Shift Updated"
        message = (
            f"URGENT: Your {shift_name} shift on {when} has been changed. "
            "Please review your schedule immediately."
        )
        kind = NotificationType.urgent
    else:
        title = "Shift Updated"
        message = f"Your {shift_name} shift on {when} has been updated. Please review your schedule."
        kind = NotificationType.info
    record_event(db, NotificationEvent(
        tenant_id=assignment.tenant_id,
        recipient_id=assignment.employee_id,
        type=kind,
        title=title,
        message=message,
        action_url=SCHEDULE_URL,
        entity_type="shift_assignment",
        entity_id=assignment.id,
    ))


def notify_shift_removed(db: AsyncSession, assignment, *, shift_name: str) -> None:
    record_event(db, NotificationEvent(
        tenant_id=assignment.tenant_id,
        recipient_id=assignment.employee_id,
        type=NotificationType.warning,
        title="Shift Removed",
        message=f"Your {shift_name} shift on {assignment.date.isoformat()} has been removed from the schedule.",
        action_url=SCHEDULE_URL,
        entity_type="shift_assignment",
        entity_id=assignment.id,
    ))


def notify_shift_needs_approval(
    db: AsyncSession,
    entry,
    *,
    employee_name: str,
    admin_ids: list[uuid.UUID],
) -> None:
    """Fan out one approval request per tenant admin."""
    for admin_id in admin_ids:
        record_event(db, NotificationEvent(
            tenant_id=entry.tenant_id,
            recipient_id=admin_id,
            type=NotificationType.action_required,
            title="Shift Approval Required",
            message=f"{employee_name} has completed a shift and requires approval",
            action_url=SHIFT_APPROVALS_URL,
            entity_type="time_entry",
            entity_id=entry.id,
        ))


def _money(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:.2f}"


def notify_timesheet_decided(db: AsyncSession, entry, *, decision: str, reason: Optional[str] = None) -> None:
    when = entry.date.isoformat()
    if decision == "reject":
        title = "Shift Rejected"
        message = f"Your shift on {when} has been rejected. Reason: {reason}"
        kind = NotificationType.error
    else:
        verb = "approved" if decision == "approve" else "edited and approved"
        title = "Shift Approved" if decision == "approve" else "Shift Edited"
        message = (
            f"Your shift on {when} has been {verb}. "
            f"Hours: {entry.approved_hours:.2f}, Rate: {_money(entry.approved_rate)}/hr, "
            f"Total: {_money(entry.total_pay)}"
        )
        kind = NotificationType.success if decision == "approve" else NotificationType.info
    record_event(db, NotificationEvent(
        tenant_id=entry.tenant_id,
        recipient_id=entry.employee_id,
        type=kind,
        title=title,
        message=message,
        action_url="/employee/timesheet",
        entity_type="time_entry",
        entity_id=entry.id,
    ))


def notify_timesheet_bulk_approved(db: AsyncSession, entry) -> None:
    record_event(db, NotificationEvent(
        tenant_id=entry.tenant_id,
        recipient_id=entry.employee_id,
        type=NotificationType.success,
        title="Timesheet Entry Approved",
        message=(
            f"Your timesheet entry for {entry.date.isoformat()} has been approved "
            "and is ready for payroll."
        ),
        action_url="/employee/timesheet",
        entity_type="time_entry",
        entity_id=entry.id,
    ))


def notify_leave_submitted(db: AsyncSession, leave_request, *, employee_name: str, admin_ids: list[uuid.UUID]) -> None:
    for admin_id in admin_ids:
        record_event(db, NotificationEvent(
            tenant_id=leave_request.tenant_id,
            recipient_id=admin_id,
            type=NotificationType.action_required,
            title="New Leave Request",
            message=(
                f"{employee_name} requested {leave_request.leave_type.value} leave from "
                f"{leave_request.start_date} to {leave_request.end_date}."
            ),
            action_url="/admin/leave",
            entity_type="leave_request",
            entity_id=leave_request.id,
        ))


def notify_leave_decided(db: AsyncSession, leave_request, *, approved: bool, reason: Optional[str] = None) -> None:
    span = f"{leave_request.start_date} to {leave_request.end_date}"
    if approved:
        title = "Leave Request Approved"
        message = f"Your leave request for {span} has been approved."
        kind = NotificationType.success
    else:
        title = "Leave Request Rejected"
        message = f"Your leave request for {span} has been rejected. Reason: {reason}"
        kind = NotificationType.error
    record_event(db, NotificationEvent(
        tenant_id=leave_request.tenant_id,
        recipient_id=leave_request.employee_id,
        type=kind,
        title=title,
        message=message,
        action_url=LEAVE_URL,
        entity_type="leave_request",
        entity_id=leave_request.id,
    ))


def notify_swap_requested(db: AsyncSession, swap, *, requester_name: str, target_name: str) -> None:
    when = swap.swap_date.isoformat()
    record_event(db, NotificationEvent(
        tenant_id=swap.tenant_id,
        recipient_id=swap.requester_id,
        type=NotificationType.info,
        title="Shift Swap Request Sent",
        message=f"Your request to swap shifts with {target_name} on {when} has been sent for approval.",
        action_url=LEAVE_URL,
        entity_type="shift_swap",
        entity_id=swap.id,
    ))
    record_event(db, NotificationEvent(
        tenant_id=swap.tenant_id,
        recipient_id=swap.target_id,
        type=NotificationType.info,
        title="Shift Swap Request Received",
        message=f"{requester_name} has requested to swap shifts with you on {when}.",
        action_url=LEAVE_URL,
        entity_type="shift_swap",
        entity_id=swap.id,
    ))


def notify_swap_decided(db: AsyncSession, swap, *, approved: bool, reason: Optional[str] = None) -> None:
    when = swap.swap_date.isoformat()
    if approved:
        title = "Shift Swap Approved"
        message = f"The shift swap on {when} has been approved."
        kind = NotificationType.success
    else:
        title = "Shift Swap Rejected"
        message = f"The shift swap on {when} has been rejected. Reason: {reason}"
        kind = NotificationType.error
    for recipient in (swap.requester_id, swap.target_id):
        record_event(db, NotificationEvent(
            tenant_id=swap.tenant_id,
            recipient_id=recipient,
            type=kind,
            title=title,
            message=message,
            action_url=LEAVE_URL,
            entity_type="shift_swap",
            entity_id=swap.id,
        ))
