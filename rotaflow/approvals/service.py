"""Approval workflow — timesheet, leave and shift-swap decisions.

Every decision:
  1. checks the caller may decide (admin, or manager with approvals enabled
     and the subject inside their locations),
  2. runs the status change through the entity's transition table,
  3. applies cascades (leave → cancel shifts, swap → exchange shift shapes),
  4. appends one ``ApprovalHistory`` row in the same transaction,
  5. records notification events for delivery after commit.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rotaflow.approvals.models import ApprovalHistory
from rotaflow.approvals.schemas import ApprovalQueue, BulkApproveResult, QueueKind
from rotaflow.auth.context import AccessContext
from rotaflow.common.audit import create_audit_entry
from rotaflow.common.constants import (
    LEAVE_CANCELLATION_REASON,
    ApprovalEntity,
    ApprovalStatus,
    AssignmentStatus,
    Decision,
    RequestStatus,
    TimeEntryStatus,
    UserRole,
)
from rotaflow.common.exceptions import (
    AppException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from rotaflow.common.state import ASSIGNMENT, LEAVE_REQUEST, SHIFT_SWAP, TIMESHEET_APPROVAL
from rotaflow.common.time_utils import as_utc, hours_between, utcnow
from rotaflow.core_hr.models import Employee
from rotaflow.core_hr.service import TenantSettingsService
from rotaflow.leave.models import LeaveRequest
from rotaflow.leave.schemas import LeaveRequestOut
from rotaflow.notifications.service import (
    notify_leave_decided,
    notify_swap_decided,
    notify_timesheet_bulk_approved,
    notify_timesheet_decided,
)
from rotaflow.scheduling.models import ShiftAssignment
from rotaflow.swaps.models import ShiftSwapRequest
from rotaflow.swaps.schemas import SwapRequestOut
from rotaflow.timekeeping.models import TimeEntry
from rotaflow.timekeeping.schemas import TimeEntryOut

logger = logging.getLogger(__name__)

# Fields that make up an assignment's shift shape; exchanged on swap approval.
_SHAPE_FIELDS = (
    "template_id",
    "override_name",
    "override_start_time",
    "override_end_time",
    "override_color",
    "notes",
)

_TIMESHEET_TARGETS = {
    Decision.approve: ApprovalStatus.approved,
    Decision.edit: ApprovalStatus.edited,
    Decision.reject: ApprovalStatus.rejected,
}
_REQUEST_TARGETS = {
    Decision.approve: RequestStatus.approved,
    Decision.reject: RequestStatus.rejected,
}


def _require_reason(decision: Decision, reason: Optional[str]) -> Optional[str]:
    if decision is Decision.reject:
        if reason is None or not reason.strip():
            raise ValidationException({"rejection_reason": ["A reason is required when rejecting"]})
        return reason.strip()
    return None


def _ensure_in_scope(ctx: AccessContext, subject: Employee) -> None:
    if not ctx.covers_location(subject.location_id):
        raise ForbiddenException("You can only decide requests for your assigned locations.")


class ApprovalService:
    """Async approval workflow operations."""

    # ── Authorization ───────────────────────────────────────────────

    @staticmethod
    async def _ensure_can_decide(db: AsyncSession, ctx: AccessContext) -> None:
        if ctx.is_admin:
            return
        if not ctx.is_manager:
            raise ForbiddenException("Only admins and managers can make approval decisions.")
        tenant_settings = await TenantSettingsService.get(db, ctx.tenant_id)
        if not tenant_settings.allow_manager_approvals:
            raise ForbiddenException("Manager approvals are disabled for this organisation.")

    @staticmethod
    def _history(
        db: AsyncSession,
        ctx: AccessContext,
        entity_type: ApprovalEntity,
        entity_id: uuid.UUID,
        status: str,
        now: datetime,
        *,
        notes: Optional[str] = None,
        approved_hours: Optional[float] = None,
        approved_rate: Optional[float] = None,
        total_pay: Optional[float] = None,
    ) -> ApprovalHistory:
        row = ApprovalHistory(
            tenant_id=ctx.tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            approver_id=ctx.user_id,
            status=status,
            notes=notes,
            approved_hours=approved_hours,
            approved_rate=approved_rate,
            total_pay=total_pay,
            decided_at=now,
        )
        db.add(row)
        return row

    # ═════════════════════════════════════════════════════════════════
    # Entry point
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def decide(
        db: AsyncSession,
        ctx: AccessContext,
        entity_type: ApprovalEntity,
        entity_id: uuid.UUID,
        decision: Decision,
        *,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        approved_hours: Optional[float] = None,
        approved_rate: Optional[float] = None,
        clock_in: Optional[datetime] = None,
        clock_out: Optional[datetime] = None,
        break_hours: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> Any:
        """Apply *decision* to one pending entity and return it."""
        await ApprovalService._ensure_can_decide(db, ctx)
        now = now or utcnow()

        if entity_type is ApprovalEntity.timesheet:
            return await ApprovalService._decide_timesheet(
                db, ctx, entity_id, decision, now,
                notes=notes,
                rejection_reason=rejection_reason,
                approved_hours=approved_hours,
                approved_rate=approved_rate,
                clock_in=clock_in,
                clock_out=clock_out,
                break_hours=break_hours,
            )
        if decision is Decision.edit:
            raise ValidationException({"action": ["edit is only valid for timesheets"]})
        if entity_type is ApprovalEntity.leave_request:
            return await ApprovalService._decide_leave(
                db, ctx, entity_id, decision, now, notes=notes, rejection_reason=rejection_reason,
            )
        return await ApprovalService._decide_swap(
            db, ctx, entity_id, decision, now, notes=notes, rejection_reason=rejection_reason,
        )

    # ═════════════════════════════════════════════════════════════════
    # Timesheets
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _decide_timesheet(
        db: AsyncSession,
        ctx: AccessContext,
        entry_id: uuid.UUID,
        decision: Decision,
        now: datetime,
        *,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        approved_hours: Optional[float] = None,
        approved_rate: Optional[float] = None,
        clock_in: Optional[datetime] = None,
        clock_out: Optional[datetime] = None,
        break_hours: Optional[float] = None,
        bulk: bool = False,
    ) -> TimeEntry:
        result = await db.execute(
            select(TimeEntry)
            .options(selectinload(TimeEntry.employee))
            .where(TimeEntry.id == entry_id, TimeEntry.tenant_id == ctx.tenant_id)
        )
        entry = result.scalars().first()
        if entry is None:
            raise NotFoundException("Time entry", entry_id)
        _ensure_in_scope(ctx, entry.employee)

        target = _TIMESHEET_TARGETS[decision]
        TIMESHEET_APPROVAL.ensure(entry.approval_status, target)
        if entry.status != TimeEntryStatus.completed:
            raise InvalidStateException("Cannot decide a shift that is still clocked in")
        reason = _require_reason(decision, rejection_reason)

        errors: dict[str, list[str]] = {}
        for field, value in (
            ("approved_hours", approved_hours),
            ("approved_rate", approved_rate),
            ("break_hours", break_hours),
        ):
            if value is not None and value < 0:
                errors[field] = [f"{field} cannot be negative"]
        if decision is Decision.edit:
            new_in = as_utc(clock_in) if clock_in is not None else as_utc(entry.clock_in)
            new_out = as_utc(clock_out) if clock_out is not None else as_utc(entry.clock_out)
            if new_out <= new_in:
                errors["clock_out"] = ["clock_out must be after clock_in"]
        if errors:
            raise ValidationException(errors)

        entry.approval_status = target
        entry.approved_by = ctx.user_id
        entry.approved_at = now
        if notes is not None:
            entry.admin_notes = notes

        if decision is Decision.reject:
            entry.rejection_reason = reason
            ApprovalService._history(
                db, ctx, ApprovalEntity.timesheet, entry.id, target.value, now, notes=reason,
            )
            await db.flush()
            notify_timesheet_decided(db, entry, decision=decision.value, reason=reason)
            logger.info("Time entry %s rejected by %s", entry.id, ctx.user_id)
            return entry

        if decision is Decision.edit:
            entry.clock_in = new_in
            entry.clock_out = new_out
            if break_hours is not None:
                entry.break_hours = round(break_hours, 2)
            entry.total_hours = max(0.0, round(hours_between(new_in, new_out) - entry.break_hours, 2))

        hours = approved_hours if approved_hours is not None else entry.total_hours
        rate = approved_rate if approved_rate is not None else (entry.employee.hourly_rate or 0.0)
        entry.approved_hours = round(hours, 2)
        entry.approved_rate = round(rate, 2)
        entry.total_pay = round(entry.approved_hours * entry.approved_rate, 2)
        entry.rejection_reason = None

        ApprovalService._history(
            db, ctx, ApprovalEntity.timesheet, entry.id, target.value, now,
            notes=notes,
            approved_hours=entry.approved_hours,
            approved_rate=entry.approved_rate,
            total_pay=entry.total_pay,
        )
        await db.flush()

        if bulk:
            notify_timesheet_bulk_approved(db, entry)
        else:
            notify_timesheet_decided(db, entry, decision=decision.value)
        logger.info(
            "Time entry %s %s by %s: %.2fh @ %.2f = %.2f",
            entry.id, target.value, ctx.user_id,
            entry.approved_hours, entry.approved_rate, entry.total_pay,
        )
        return entry

    @staticmethod
    async def bulk_approve(
        db: AsyncSession,
        ctx: AccessContext,
        entry_ids: Sequence[uuid.UUID],
        *,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BulkApproveResult:
        """Approve each entry independently; failures are skipped and logged."""
        if not entry_ids:
            raise ValidationException({"entry_ids": ["At least one entry id is required"]})
        await ApprovalService._ensure_can_decide(db, ctx)
        now = now or utcnow()

        approved = 0
        for entry_id in entry_ids:
            try:
                entry = await ApprovalService._decide_timesheet(
                    db, ctx, entry_id, Decision.approve, now, notes=notes, bulk=True,
                )
            except AppException as exc:
                logger.warning("Bulk approve skipped entry %s: %s", entry_id, exc.detail)
                continue
            await create_audit_entry(
                db,
                tenant_id=ctx.tenant_id,
                action="bulk_approve",
                entity_type="time_entry",
                entity_id=entry.id,
                actor_id=ctx.user_id,
                old_values={"approval_status": ApprovalStatus.pending},
                new_values={
                    "approval_status": entry.approval_status,
                    "approved_hours": entry.approved_hours,
                    "approved_rate": entry.approved_rate,
                    "total_pay": entry.total_pay,
                },
            )
            approved += 1

        logger.info("Bulk approved %d of %d entries by %s", approved, len(entry_ids), ctx.user_id)
        return BulkApproveResult(approved_count=approved, total_requested=len(entry_ids))

    # ═════════════════════════════════════════════════════════════════
    # Leave requests
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _decide_leave(
        db: AsyncSession,
        ctx: AccessContext,
        request_id: uuid.UUID,
        decision: Decision,
        now: datetime,
        *,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.employee))
            .where(LeaveRequest.id == request_id, LeaveRequest.tenant_id == ctx.tenant_id)
        )
        leave_request = result.scalars().first()
        if leave_request is None:
            raise NotFoundException("Leave request", request_id)
        _ensure_in_scope(ctx, leave_request.employee)

        target = _REQUEST_TARGETS[decision]
        LEAVE_REQUEST.ensure(leave_request.status, target)
        reason = _require_reason(decision, rejection_reason)

        leave_request.status = target
        leave_request.approved_by = ctx.user_id
        leave_request.approved_at = now
        if notes is not None:
            leave_request.manager_notes = notes

        cancelled = 0
        if decision is Decision.approve:
            shifts = await db.execute(
                select(ShiftAssignment).where(
                    ShiftAssignment.tenant_id == ctx.tenant_id,
                    ShiftAssignment.employee_id == leave_request.employee_id,
                    ShiftAssignment.date >= leave_request.start_date,
                    ShiftAssignment.date <= leave_request.end_date,
                    ShiftAssignment.status.in_(
                        (AssignmentStatus.scheduled, AssignmentStatus.assigned)
                    ),
                )
            )
            for assignment in shifts.scalars().all():
                ASSIGNMENT.ensure(assignment.status, AssignmentStatus.cancelled)
                assignment.status = AssignmentStatus.cancelled
                assignment.cancellation_reason = LEAVE_CANCELLATION_REASON
                cancelled += 1
        else:
            leave_request.rejection_reason = reason

        ApprovalService._history(
            db, ctx, ApprovalEntity.leave_request, leave_request.id, target.value, now,
            notes=reason if reason is not None else notes,
        )
        await db.flush()

        notify_leave_decided(
            db, leave_request, approved=decision is Decision.approve, reason=reason,
        )
        logger.info(
            "Leave request %s %s by %s (%d shifts cancelled)",
            leave_request.id, target.value, ctx.user_id, cancelled,
        )
        return leave_request

    # ═════════════════════════════════════════════════════════════════
    # Shift swaps
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _decide_swap(
        db: AsyncSession,
        ctx: AccessContext,
        swap_id: uuid.UUID,
        decision: Decision,
        now: datetime,
        *,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> ShiftSwapRequest:
        result = await db.execute(
            select(ShiftSwapRequest)
            .options(
                selectinload(ShiftSwapRequest.requester),
                selectinload(ShiftSwapRequest.target),
                selectinload(ShiftSwapRequest.original_shift),
                selectinload(ShiftSwapRequest.requested_shift),
            )
            .where(ShiftSwapRequest.id == swap_id, ShiftSwapRequest.tenant_id == ctx.tenant_id)
        )
        swap = result.scalars().first()
        if swap is None:
            raise NotFoundException("Shift swap request", swap_id)
        # Approval rewrites both parties' shifts.
        _ensure_in_scope(ctx, swap.requester)
        _ensure_in_scope(ctx, swap.target)

        target = _REQUEST_TARGETS[decision]
        SHIFT_SWAP.ensure(swap.status, target)
        reason = _require_reason(decision, rejection_reason)

        if decision is Decision.approve:
            original, requested = swap.original_shift, swap.requested_shift
            if AssignmentStatus.cancelled in (original.status, requested.status):
                raise InvalidStateException("One of the shifts in this swap has been cancelled")
            for field in _SHAPE_FIELDS:
                mine, theirs = getattr(original, field), getattr(requested, field)
                setattr(original, field, theirs)
                setattr(requested, field, mine)
        else:
            swap.rejection_reason = reason

        swap.status = target
        swap.approved_by = ctx.user_id
        swap.approved_at = now
        if notes is not None:
            swap.manager_notes = notes

        ApprovalService._history(
            db, ctx, ApprovalEntity.shift_swap, swap.id, target.value, now,
            notes=reason if reason is not None else notes,
        )
        await db.flush()

        notify_swap_decided(db, swap, approved=decision is Decision.approve, reason=reason)
        logger.info("Shift swap %s %s by %s", swap.id, target.value, ctx.user_id)
        return swap

    # ═════════════════════════════════════════════════════════════════
    # Pending queue
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def pending(
        db: AsyncSession, ctx: AccessContext, kind: QueueKind = QueueKind.all,
    ) -> ApprovalQueue:
        """Pending items the caller could decide, newest first."""
        if ctx.role == UserRole.employee:
            raise ForbiddenException("Only admins and managers can view the approval queue.")
        if ctx.is_manager and not ctx.location_ids:
            raise ForbiddenException("No locations assigned to this manager")

        def scoped(query, employee_column):
            query = query.join(Employee, Employee.id == employee_column)
            if ctx.is_manager:
                query = query.where(Employee.location_id.in_(list(ctx.location_ids)))
            return query

        queue = ApprovalQueue()
        if kind in (QueueKind.all, QueueKind.timesheets):
            query = scoped(
                select(TimeEntry).where(
                    TimeEntry.tenant_id == ctx.tenant_id,
                    TimeEntry.status == TimeEntryStatus.completed,
                    TimeEntry.approval_status == ApprovalStatus.pending,
                ),
                TimeEntry.employee_id,
            ).order_by(TimeEntry.created_at.desc())
            queue.timesheets = [
                TimeEntryOut.model_validate(e) for e in (await db.execute(query)).scalars().all()
            ]
        if kind in (QueueKind.all, QueueKind.leave_requests):
            query = scoped(
                select(LeaveRequest)
                .options(selectinload(LeaveRequest.employee))
                .where(
                    LeaveRequest.tenant_id == ctx.tenant_id,
                    LeaveRequest.status == RequestStatus.pending,
                ),
                LeaveRequest.employee_id,
            ).order_by(LeaveRequest.created_at.desc())
            queue.leave_requests = [
                LeaveRequestOut.model_validate(r) for r in (await db.execute(query)).scalars().all()
            ]
        if kind in (QueueKind.all, QueueKind.shift_swaps):
            query = scoped(
                select(ShiftSwapRequest)
                .options(
                    selectinload(ShiftSwapRequest.requester),
                    selectinload(ShiftSwapRequest.target),
                )
                .where(
                    ShiftSwapRequest.tenant_id == ctx.tenant_id,
                    ShiftSwapRequest.status == RequestStatus.pending,
                ),
                ShiftSwapRequest.requester_id,
            ).order_by(ShiftSwapRequest.created_at.desc())
            if ctx.is_manager:
                query = query.where(ShiftSwapRequest.target_id.in_(
                    select(Employee.id).where(Employee.location_id.in_(list(ctx.location_ids)))
                ))
            queue.shift_swaps = [
                SwapRequestOut.model_validate(s) for s in (await db.execute(query)).scalars().all()
            ]
        return queue
