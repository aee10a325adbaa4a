"""Approval routers.

``admin_router``    → /admin    (shift approvals, leave/swap decisions, bulk approve)
``manager_router``  → /manager  (pending queue and scoped decisions)
"""


import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.approvals.schemas import (
    BulkApproveRequest,
    QueueKind,
    RequestDecision,
    TimesheetDecisionRequest,
)
from rotaflow.approvals.service import ApprovalService
from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import require_role
from rotaflow.common.constants import ApprovalEntity, UserRole
from rotaflow.common.rate_limit import BULK_LIMIT, limiter
from rotaflow.database import get_db
from rotaflow.leave.schemas import LeaveRequestOut
from rotaflow.swaps.schemas import SwapRequestOut
from rotaflow.timekeeping.schemas import TimeEntryOut

admin_router = APIRouter(prefix="", tags=["approvals"])
manager_router = APIRouter(prefix="", tags=["manager"])

_admin = require_role(UserRole.admin)
_manager = require_role(UserRole.manager)


async def _timesheet_decision(
    db: AsyncSession, ctx: AccessContext, entry_id: uuid.UUID, body: TimesheetDecisionRequest,
) -> dict:
    entry = await ApprovalService.decide(
        db, ctx, ApprovalEntity.timesheet, entry_id, body.action,
        notes=body.admin_notes,
        rejection_reason=body.rejection_reason,
        approved_hours=body.approved_hours,
        approved_rate=body.approved_rate,
        clock_in=body.clock_in,
        clock_out=body.clock_out,
        break_hours=body.break_hours,
    )
    return {
        "success": True,
        "data": TimeEntryOut.model_validate(entry),
        "message": f"Shift {entry.approval_status.value} successfully",
    }


async def _leave_decision(
    db: AsyncSession, ctx: AccessContext, request_id: uuid.UUID, body: RequestDecision,
) -> dict:
    leave_request = await ApprovalService.decide(
        db, ctx, ApprovalEntity.leave_request, request_id, body.action,
        notes=body.manager_notes,
        rejection_reason=body.rejection_reason,
    )
    return {
        "success": True,
        "data": LeaveRequestOut.model_validate(leave_request),
        "message": f"Leave request {leave_request.status.value} successfully",
    }


async def _swap_decision(
    db: AsyncSession, ctx: AccessContext, swap_id: uuid.UUID, body: RequestDecision,
) -> dict:
    swap = await ApprovalService.decide(
        db, ctx, ApprovalEntity.shift_swap, swap_id, body.action,
        notes=body.manager_notes,
        rejection_reason=body.rejection_reason,
    )
    return {
        "success": True,
        "data": SwapRequestOut.model_validate(swap),
        "message": f"Shift swap {swap.status.value} successfully",
    }


# ═════════════════════════════════════════════════════════════════════
# Admin
# ═════════════════════════════════════════════════════════════════════

# ── PATCH /shift-approvals/{entry_id} ───────────────────────────────

@admin_router.patch("/shift-approvals/{entry_id}")
async def decide_shift(
    entry_id: uuid.UUID,
    body: TimesheetDecisionRequest,
    ctx: AccessContext = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _timesheet_decision(db, ctx, entry_id, body)


# ── PATCH /leave-requests/{request_id} ──────────────────────────────

@admin_router.patch("/leave-requests/{request_id}")
async def decide_leave(
    request_id: uuid.UUID,
    body: RequestDecision,
    ctx: AccessContext = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _leave_decision(db, ctx, request_id, body)


# ── PATCH /swap-requests/{swap_id} ──────────────────────────────────

@admin_router.patch("/swap-requests/{swap_id}")
async def decide_swap(
    swap_id: uuid.UUID,
    body: RequestDecision,
    ctx: AccessContext = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _swap_decision(db, ctx, swap_id, body)


# ── POST /timesheet/bulk-approve ────────────────────────────────────

@admin_router.post("/timesheet/bulk-approve")
@limiter.limit(BULK_LIMIT)
async def bulk_approve(
    request: Request,
    body: BulkApproveRequest,
    ctx: AccessContext = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await ApprovalService.bulk_approve(db, ctx, body.entry_ids, notes=body.notes)
    return {
        "success": True,
        "data": result,
        "message": f"Approved {result.approved_count} of {result.total_requested} entries",
    }


# ═════════════════════════════════════════════════════════════════════
# Manager
# ═════════════════════════════════════════════════════════════════════

@manager_router.get("/approvals")
async def pending_approvals(
    kind: QueueKind = Query(QueueKind.all, alias="type"),
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    queue = await ApprovalService.pending(db, ctx, kind)
    return {"success": True, "data": queue}


@manager_router.patch("/approvals/timesheet/{entry_id}")
async def manager_decide_timesheet(
    entry_id: uuid.UUID,
    body: TimesheetDecisionRequest,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    return await _timesheet_decision(db, ctx, entry_id, body)


@manager_router.patch("/approvals/leave-request/{request_id}")
async def manager_decide_leave(
    request_id: uuid.UUID,
    body: RequestDecision,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    return await _leave_decision(db, ctx, request_id, body)


@manager_router.patch("/approvals/shift-swap/{swap_id}")
async def manager_decide_swap(
    swap_id: uuid.UUID,
    body: RequestDecision,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    return await _swap_decision(db, ctx, swap_id, body)
