"""Time accounting routers.

``router``        → /time   (clock in/out and breaks, any authenticated user)
``admin_router``  → /admin  (timesheet read model and manual edits, manager+)
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import get_access_context, require_role
from rotaflow.common.constants import ApprovalStatus, UserRole
from rotaflow.common.time_utils import utcnow, week_bounds
from rotaflow.database import get_db
from rotaflow.timekeeping.schemas import (
    BreakHoursRequest,
    BreakLogOut,
    ClockOutRequest,
    ClockRequest,
    TimeEntryEditRequest,
    TimeEntryOut,
)
from rotaflow.timekeeping.service import TimeAccountingService

router = APIRouter(prefix="", tags=["time"])
admin_router = APIRouter(prefix="", tags=["timesheet"])


def _target(body: Optional[ClockRequest]) -> Optional[uuid.UUID]:
    return body.employee_id if body is not None else None


# ── POST /clock-in ──────────────────────────────────────────────────

@router.post("/clock-in", status_code=status.HTTP_201_CREATED)
async def clock_in(
    body: Optional[ClockRequest] = None,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    entry = await TimeAccountingService.clock_in(db, ctx, _target(body))
    return {
        "success": True,
        "data": TimeEntryOut.model_validate(entry),
        "message": "Clocked in successfully",
    }


# ── POST /clock-out ─────────────────────────────────────────────────

@router.post("/clock-out")
async def clock_out(
    body: Optional[ClockOutRequest] = None,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    result = await TimeAccountingService.clock_out(db, ctx, _target(body), body)
    return {
        "success": True,
        "data": result,
        "message": f"Clocked out successfully. Total hours: {result.total_hours:.2f}",
    }


# ── Breaks ──────────────────────────────────────────────────────────

@router.post("/break-start")
async def break_start(
    body: Optional[ClockRequest] = None,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    log = await TimeAccountingService.break_start(db, ctx, _target(body))
    return {"success": True, "data": BreakLogOut.model_validate(log), "message": "Break started"}


@router.post("/break-end")
async def break_end(
    body: Optional[ClockRequest] = None,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    log = await TimeAccountingService.break_end(db, ctx, _target(body))
    return {
        "success": True,
        "data": BreakLogOut.model_validate(log),
        "message": f"Break ended. Duration: {log.break_hours:.2f} hours",
    }


@router.get("/break-status")
async def break_status(
    employee_id: Optional[uuid.UUID] = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "data": await TimeAccountingService.break_status(db, ctx, employee_id)}


# ═════════════════════════════════════════════════════════════════════
# Admin: timesheet
# ═════════════════════════════════════════════════════════════════════

_manager = require_role(UserRole.manager)


@admin_router.get("/timesheet")
async def timesheet(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    approval_status: Optional[ApprovalStatus] = Query(None),
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    """Time entries with scheduled shift and discrepancies; defaults to this week."""
    if start_date is None or end_date is None:
        week_start, week_end = week_bounds(utcnow().date())
        start_date = start_date or week_start
        end_date = end_date or week_end
    rows = await TimeAccountingService.timesheet(
        db, ctx, start_date, end_date,
        employee_id=employee_id,
        approval_status=approval_status,
    )
    return {"success": True, "data": rows}


@admin_router.patch("/timesheet/{entry_id}")
async def edit_time_entry(
    entry_id: uuid.UUID,
    body: TimeEntryEditRequest,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    entry = await TimeAccountingService.edit_entry(db, ctx, entry_id, body)
    return {
        "success": True,
        "data": TimeEntryOut.model_validate(entry),
        "message": "Time entry updated",
    }


@admin_router.put("/time-entries/{entry_id}/break-hours")
async def set_break_hours(
    entry_id: uuid.UUID,
    body: BreakHoursRequest,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    entry = await TimeAccountingService.set_break_hours(db, ctx, entry_id, body.break_hours)
    return {
        "success": True,
        "data": TimeEntryOut.model_validate(entry),
        "message": "Break hours updated",
    }
