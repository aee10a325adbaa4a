"""Dashboard feed — read-only aggregation queries and the server-sent-event stream.

All query methods are static async, following the project convention.
Counts are computed at DB level; list queries are capped and eager-load
what they serialise.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from datetime import date, datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from rotaflow.common.constants import AssignmentStatus, RequestStatus, TimeEntryStatus
from rotaflow.common.time_utils import utcnow, week_bounds
from rotaflow.core_hr.models import Employee
from rotaflow.dashboard.schemas import (
    DashboardStats,
    DashboardUpdates,
    EmployeeStatusItem,
    RecentLeaveItem,
    RecentSwapItem,
    UpcomingShiftItem,
)
from rotaflow.leave.models import LeaveRequest
from rotaflow.scheduling.models import ShiftAssignment
from rotaflow.scheduling.service import shape_out
from rotaflow.scheduling.shapes import resolve_shape
from rotaflow.swaps.models import ShiftSwapRequest
from rotaflow.timekeeping.models import TimeEntry

logger = logging.getLogger(__name__)

_OPEN_ENTRY = (TimeEntryStatus.in_progress, TimeEntryStatus.on_break)

EMPLOYEE_LIMIT = 10
SHIFT_LIMIT = 10
REQUEST_LIMIT = 5


class DashboardService:
    """Async dashboard aggregation queries, scoped to one tenant."""

    # ═════════════════════════════════════════════════════════════════
    # event: stats
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_stats(
        db: AsyncSession, tenant_id: uuid.UUID, *, today: Optional[date] = None,
    ) -> DashboardStats:
        today = today or utcnow().date()
        week_start, week_end = week_bounds(today)

        active_q = select(func.count(Employee.id)).where(
            Employee.tenant_id == tenant_id, Employee.is_active.is_(True),
        )
        online_q = select(func.count(Employee.id)).where(
            Employee.tenant_id == tenant_id,
            Employee.is_active.is_(True),
            Employee.is_online.is_(True),
        )
        week_shifts = (
            ShiftAssignment.tenant_id == tenant_id,
            ShiftAssignment.date >= week_start,
            ShiftAssignment.date <= week_end,
        )
        shifts_q = select(func.count(ShiftAssignment.id)).where(
            *week_shifts, ShiftAssignment.status != AssignmentStatus.cancelled,
        )
        completed_q = select(func.count(ShiftAssignment.id)).where(
            *week_shifts, ShiftAssignment.status == AssignmentStatus.completed,
        )
        swaps_q = select(func.count(ShiftSwapRequest.id)).where(
            ShiftSwapRequest.tenant_id == tenant_id,
            ShiftSwapRequest.status == RequestStatus.pending,
        )
        leave_q = select(func.count(LeaveRequest.id)).where(
            LeaveRequest.tenant_id == tenant_id,
            LeaveRequest.status == RequestStatus.pending,
        )
        entries_q = select(func.count(TimeEntry.id)).where(
            TimeEntry.tenant_id == tenant_id, TimeEntry.status.in_(_OPEN_ENTRY),
        )

        results = await _multi_scalar(
            db, active_q, online_q, shifts_q, completed_q, swaps_q, leave_q, entries_q,
        )
        return DashboardStats(
            active_employees=results[0] or 0,
            online_employees=results[1] or 0,
            shifts_this_week=results[2] or 0,
            completed_shifts_this_week=results[3] or 0,
            pending_swap_requests=results[4] or 0,
            pending_leave_requests=results[5] or 0,
            active_time_entries=results[6] or 0,
        )

    # ═════════════════════════════════════════════════════════════════
    # event: updates
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_updates(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> DashboardUpdates:
        now = now or utcnow()
        today = today or now.date()

        # Employee presence: on break beats online beats offline
        open_entries = await db.execute(
            select(TimeEntry.employee_id, TimeEntry.status).where(
                TimeEntry.tenant_id == tenant_id, TimeEntry.status.in_(_OPEN_ENTRY),
            )
        )
        presence = {employee_id: status for employee_id, status in open_entries.all()}
        employees = await db.execute(
            select(Employee)
            .where(Employee.tenant_id == tenant_id, Employee.is_active.is_(True))
            .order_by(Employee.first_name, Employee.last_name)
            .limit(EMPLOYEE_LIMIT)
        )
        employee_items = [
            EmployeeStatusItem(
                id=e.id,
                employee_code=e.employee_code,
                first_name=e.first_name,
                last_name=e.last_name,
                status=_presence(presence.get(e.id), e.is_online),
                last_online=e.last_online,
            )
            for e in employees.scalars().all()
        ]

        shifts = await db.execute(
            select(ShiftAssignment)
            .options(
                selectinload(ShiftAssignment.employee),
                selectinload(ShiftAssignment.template),
            )
            .where(
                ShiftAssignment.tenant_id == tenant_id,
                ShiftAssignment.date >= today,
                ShiftAssignment.status != AssignmentStatus.cancelled,
            )
            .order_by(ShiftAssignment.date, ShiftAssignment.created_at)
            .limit(SHIFT_LIMIT)
        )
        shift_items = [
            UpcomingShiftItem(
                id=a.id,
                date=a.date,
                status=a.status,
                employee_id=a.employee_id,
                employee_name=a.employee.full_name,
                shape=shape_out(resolve_shape(a, a.template)),
            )
            for a in shifts.scalars().all()
        ]

        swaps = await db.execute(
            select(ShiftSwapRequest)
            .options(
                selectinload(ShiftSwapRequest.requester),
                selectinload(ShiftSwapRequest.target),
            )
            .where(ShiftSwapRequest.tenant_id == tenant_id)
            .order_by(ShiftSwapRequest.created_at.desc())
            .limit(REQUEST_LIMIT)
        )
        swap_items = [
            RecentSwapItem(
                id=s.id,
                swap_date=s.swap_date,
                status=s.status,
                requester_name=s.requester.full_name,
                target_name=s.target.full_name,
                reason=s.reason,
                created_at=s.created_at,
            )
            for s in swaps.scalars().all()
        ]

        leave = await db.execute(
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.employee))
            .where(LeaveRequest.tenant_id == tenant_id)
            .order_by(LeaveRequest.created_at.desc())
            .limit(REQUEST_LIMIT)
        )
        leave_items = [
            RecentLeaveItem(
                id=r.id,
                leave_type=r.leave_type,
                start_date=r.start_date,
                end_date=r.end_date,
                status=r.status,
                employee_name=r.employee.full_name,
                created_at=r.created_at,
            )
            for r in leave.scalars().all()
        ]

        return DashboardUpdates(
            employees=employee_items,
            shifts=shift_items,
            swap_requests=swap_items,
            leave_requests=leave_items,
            timestamp=now,
        )


# ═════════════════════════════════════════════════════════════════════
# Server-sent events
# ═════════════════════════════════════════════════════════════════════


def format_event(event: str, data: Any) -> str:
    """Encode one SSE frame: ``event:`` line, JSON ``data:`` line, blank line."""
    return f"event: {event}\ndata: {json.dumps(jsonable_encoder(data))}\n\n"


async def _refresh_frames(
    factory: async_sessionmaker[AsyncSession], tenant_id: uuid.UUID,
) -> list[str]:
    """Read stats and updates in one short-lived session."""
    try:
        async with factory() as session:
            stats = await DashboardService.get_stats(session, tenant_id)
            updates = await DashboardService.get_updates(session, tenant_id)
    except SQLAlchemyError:
        logger.exception("Dashboard refresh failed for tenant %s", tenant_id)
        return [format_event("error", {"message": "Failed to load dashboard data"})]
    return [format_event("stats", stats), format_event("updates", updates)]


async def event_stream(
    is_disconnected: Callable[[], Awaitable[bool]],
    factory: async_sessionmaker[AsyncSession],
    tenant_id: uuid.UUID,
    *,
    heartbeat_seconds: float,
    refresh_seconds: float,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[str]:
    """Yield SSE frames for one client until it disconnects.

    Sends ``connected`` and an initial refresh immediately, then a
    ``heartbeat`` every *heartbeat_seconds* and ``stats``/``updates`` every
    *refresh_seconds*.
    """
    yield format_event("connected", {"tenant_id": tenant_id, "timestamp": utcnow()})
    for frame in await _refresh_frames(factory, tenant_id):
        yield frame

    started = clock()
    next_heartbeat = started + heartbeat_seconds
    next_refresh = started + refresh_seconds
    while not await is_disconnected():
        now = clock()
        wait = min(next_heartbeat, next_refresh) - now
        if wait > 0:
            await asyncio.sleep(wait)
            continue
        if now >= next_refresh:
            for frame in await _refresh_frames(factory, tenant_id):
                yield frame
            next_refresh = now + refresh_seconds
        if now >= next_heartbeat:
            yield format_event("heartbeat", {"timestamp": utcnow()})
            next_heartbeat = now + heartbeat_seconds
    logger.debug("Dashboard client for tenant %s disconnected", tenant_id)


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def _presence(entry_status: Optional[TimeEntryStatus], is_online: bool) -> str:
    if entry_status == TimeEntryStatus.on_break:
        return "break"
    if entry_status == TimeEntryStatus.in_progress or is_online:
        return "online"
    return "offline"


async def _multi_scalar(db: AsyncSession, *stmts) -> list:
    """Execute multiple scalar queries and return their results in order."""
    results = []
    for stmt in stmts:
        result = await db.execute(stmt)
        results.append(result.scalar())
    return results
