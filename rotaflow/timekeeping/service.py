"""Time accounting — clock in/out, breaks, manual edits and the timesheet read model.

Hours are always stored rounded to two decimal places. Datetimes read back
from the database go through :func:`as_utc` before any arithmetic.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rotaflow.auth.context import AccessContext
from rotaflow.common.audit import create_audit_entry
from rotaflow.common.constants import (
    ApprovalStatus,
    AssignmentStatus,
    BreakStatus,
    TimeEntryStatus,
    UserRole,
)
from rotaflow.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from rotaflow.common.state import TIME_ENTRY
from rotaflow.common.time_utils import as_utc, hours_between, utcnow, whole_minutes
from rotaflow.config import settings
from rotaflow.core_hr.models import Employee
from rotaflow.core_hr.schemas import EmployeeBrief
from rotaflow.core_hr.service import EmployeeQueries
from rotaflow.notifications.service import notify_shift_needs_approval
from rotaflow.scheduling.models import ShiftAssignment
from rotaflow.scheduling.service import shape_out
from rotaflow.scheduling.shapes import resolve_shape
from rotaflow.timekeeping.discrepancy import detect
from rotaflow.timekeeping.models import BreakLog, TimeEntry
from rotaflow.timekeeping.schemas import (
    BreakLogOut,
    BreakStatusOut,
    ClockOutRequest,
    ClockOutResult,
    DiscrepancyOut,
    TimeEntryEditRequest,
    TimeEntryOut,
    TimesheetRow,
)

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (TimeEntryStatus.in_progress, TimeEntryStatus.on_break)
_TIME_FIELDS = ("clock_in", "clock_out", "break_hours")


def _worked_hours(clock_in: datetime, clock_out: datetime, break_hours: float) -> float:
    return max(0.0, round(hours_between(clock_in, clock_out) - break_hours, 2))


def _entry_snapshot(entry: TimeEntry) -> dict[str, Any]:
    return {
        "clock_in": as_utc(entry.clock_in),
        "clock_out": as_utc(entry.clock_out),
        "break_hours": entry.break_hours,
        "total_hours": entry.total_hours,
        "approval_status": entry.approval_status,
        "admin_notes": entry.admin_notes,
    }


class TimeAccountingService:
    """Async clock / break / timesheet operations."""

    # ── Internal lookups ────────────────────────────────────────────

    @staticmethod
    async def _resolve_employee(
        db: AsyncSession, ctx: AccessContext, employee_id: Optional[uuid.UUID],
    ) -> Employee:
        employee = await EmployeeQueries.get(db, ctx.tenant_id, employee_id or ctx.user_id)
        ctx.ensure_can_act_for(employee)
        return employee

    @staticmethod
    async def _open_entry(
        db: AsyncSession, tenant_id: uuid.UUID, employee_id: uuid.UUID,
    ) -> Optional[TimeEntry]:
        result = await db.execute(
            select(TimeEntry).where(
                TimeEntry.tenant_id == tenant_id,
                TimeEntry.employee_id == employee_id,
                TimeEntry.status.in_(_OPEN_STATUSES),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _open_break(
        db: AsyncSession, tenant_id: uuid.UUID, employee_id: uuid.UUID,
    ) -> Optional[BreakLog]:
        result = await db.execute(
            select(BreakLog).where(
                BreakLog.tenant_id == tenant_id,
                BreakLog.employee_id == employee_id,
                BreakLog.status == BreakStatus.active,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def get_entry(db: AsyncSession, ctx: AccessContext, entry_id: uuid.UUID) -> TimeEntry:
        """Load an entry with its employee; admins, or managers in scope, only."""
        result = await db.execute(
            select(TimeEntry)
            .options(selectinload(TimeEntry.employee))
            .where(TimeEntry.id == entry_id, TimeEntry.tenant_id == ctx.tenant_id)
        )
        entry = result.scalars().first()
        if entry is None:
            raise NotFoundException("Time entry", entry_id)
        if not ctx.covers_location(entry.employee.location_id):
            raise ForbiddenException("This time entry is outside your permitted locations.")
        return entry

    @staticmethod
    def _close_break(log: BreakLog, entry: TimeEntry, now: datetime) -> None:
        log.break_end = now
        log.break_hours = hours_between(log.break_start, now)
        log.status = BreakStatus.completed
        TIME_ENTRY.ensure(entry.status, TimeEntryStatus.in_progress)
        entry.break_hours = round((entry.break_hours or 0.0) + log.break_hours, 2)
        entry.status = TimeEntryStatus.in_progress

    # ═════════════════════════════════════════════════════════════════
    # Clock in / out
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def clock_in(
        db: AsyncSession,
        ctx: AccessContext,
        employee_id: Optional[uuid.UUID] = None,
        *,
        now: Optional[datetime] = None,
    ) -> TimeEntry:
        """Open a time entry; links today's assignment when there is one."""
        employee = await TimeAccountingService._resolve_employee(db, ctx, employee_id)
        if await TimeAccountingService._open_entry(db, ctx.tenant_id, employee.id):
            raise ConflictError(
                "status", TimeEntryStatus.in_progress.value,
                detail="Already clocked in. Please clock out first.",
            )

        now = now or utcnow()
        today = now.date()
        result = await db.execute(
            select(ShiftAssignment.id).where(
                ShiftAssignment.tenant_id == ctx.tenant_id,
                ShiftAssignment.employee_id == employee.id,
                ShiftAssignment.date == today,
                ShiftAssignment.status != AssignmentStatus.cancelled,
            )
        )
        assignment_id = result.scalars().first()

        entry = TimeEntry(
            tenant_id=ctx.tenant_id,
            employee_id=employee.id,
            shift_assignment_id=assignment_id,
            date=today,
            clock_in=now,
            break_hours=0.0,
            max_break_hours=settings.DEFAULT_MAX_BREAK_HOURS,
            total_hours=0.0,
            status=TimeEntryStatus.in_progress,
            approval_status=ApprovalStatus.pending,
        )
        db.add(entry)
        employee.is_online = True
        employee.last_online = now
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "status", TimeEntryStatus.in_progress.value,
                detail="Already clocked in. Please clock out first.",
            ) from exc

        logger.info("Employee %s clocked in (entry %s)", employee.id, entry.id)
        return entry

    @staticmethod
    async def clock_out(
        db: AsyncSession,
        ctx: AccessContext,
        employee_id: Optional[uuid.UUID] = None,
        data: Optional[ClockOutRequest] = None,
        *,
        now: Optional[datetime] = None,
    ) -> ClockOutResult:
        """Close the open entry, compute hours and queue it for approval.

        An entry still on break has its break closed at the same instant.
        """
        employee = await TimeAccountingService._resolve_employee(db, ctx, employee_id)
        entry = await TimeAccountingService._open_entry(db, ctx.tenant_id, employee.id)
        if entry is None:
            raise NotFoundException("Time entry", detail="No active shift found")

        now = now or utcnow()
        data = data or ClockOutRequest()

        if entry.status == TimeEntryStatus.on_break:
            open_break = await TimeAccountingService._open_break(db, ctx.tenant_id, employee.id)
            if open_break is not None:
                TimeAccountingService._close_break(open_break, entry, now)
            else:
                entry.status = TimeEntryStatus.in_progress

        duration = hours_between(entry.clock_in, now)
        total = round(duration - entry.break_hours, 2)
        if total < 0:
            logger.warning(
                "Entry %s worked hours negative (%.2f); clamping to 0", entry.id, total,
            )
            total = 0.0

        TIME_ENTRY.ensure(entry.status, TimeEntryStatus.completed)
        entry.clock_out = now
        entry.total_hours = total
        entry.status = TimeEntryStatus.completed
        entry.approval_status = ApprovalStatus.pending
        entry.total_calls_taken = data.total_calls_taken
        entry.leads_generated = data.leads_generated
        entry.shift_remarks = data.shift_remarks
        entry.performance_rating = data.performance_rating

        employee.is_online = False
        employee.last_online = now
        await db.flush()

        admin_ids = await EmployeeQueries.admin_ids(db, ctx.tenant_id)
        notify_shift_needs_approval(
            db, entry, employee_name=employee.full_name, admin_ids=admin_ids,
        )

        logger.info(
            "Employee %s clocked out (entry %s): %.2fh worked, %.2fh break",
            employee.id, entry.id, total, entry.break_hours,
        )
        return ClockOutResult(
            entry=TimeEntryOut.model_validate(entry),
            total_shift_duration=duration,
            break_hours=entry.break_hours,
            total_hours=total,
        )

    # ═════════════════════════════════════════════════════════════════
    # Breaks
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def break_start(
        db: AsyncSession,
        ctx: AccessContext,
        employee_id: Optional[uuid.UUID] = None,
        *,
        now: Optional[datetime] = None,
    ) -> BreakLog:
        employee = await TimeAccountingService._resolve_employee(db, ctx, employee_id)
        if await TimeAccountingService._open_break(db, ctx.tenant_id, employee.id):
            raise ConflictError("break", BreakStatus.active.value, detail="Break already in progress")

        entry = await TimeAccountingService._open_entry(db, ctx.tenant_id, employee.id)
        if entry is None or entry.status != TimeEntryStatus.in_progress:
            raise InvalidStateException("No active shift found. Please clock in first.")
        if entry.break_hours >= entry.max_break_hours:
            raise InvalidStateException("Break time limit reached")

        TIME_ENTRY.ensure(entry.status, TimeEntryStatus.on_break)
        log = BreakLog(
            tenant_id=ctx.tenant_id,
            time_entry_id=entry.id,
            employee_id=employee.id,
            break_start=now or utcnow(),
            break_hours=0.0,
            status=BreakStatus.active,
        )
        db.add(log)
        entry.status = TimeEntryStatus.on_break
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "break", BreakStatus.active.value, detail="Break already in progress",
            ) from exc
        return log

    @staticmethod
    async def break_end(
        db: AsyncSession,
        ctx: AccessContext,
        employee_id: Optional[uuid.UUID] = None,
        *,
        now: Optional[datetime] = None,
    ) -> BreakLog:
        employee = await TimeAccountingService._resolve_employee(db, ctx, employee_id)
        log = await TimeAccountingService._open_break(db, ctx.tenant_id, employee.id)
        if log is None:
            raise NotFoundException("Break", detail="No active break found")

        entry = await db.get(TimeEntry, log.time_entry_id)
        if entry is None:
            raise NotFoundException("Time entry", log.time_entry_id)

        TimeAccountingService._close_break(log, entry, now or utcnow())
        await db.flush()
        return log

    @staticmethod
    async def break_status(
        db: AsyncSession,
        ctx: AccessContext,
        employee_id: Optional[uuid.UUID] = None,
        *,
        now: Optional[datetime] = None,
    ) -> BreakStatusOut:
        employee = await TimeAccountingService._resolve_employee(db, ctx, employee_id)
        entry = await TimeAccountingService._open_entry(db, ctx.tenant_id, employee.id)
        log = await TimeAccountingService._open_break(db, ctx.tenant_id, employee.id)
        if log is None:
            return BreakStatusOut(
                on_break=False,
                break_hours_used=entry.break_hours if entry else 0.0,
                max_break_hours=entry.max_break_hours if entry else None,
            )
        return BreakStatusOut(
            on_break=True,
            current_break=BreakLogOut.model_validate(log),
            elapsed_minutes=whole_minutes((now or utcnow()) - as_utc(log.break_start)),
            break_hours_used=entry.break_hours if entry else 0.0,
            max_break_hours=entry.max_break_hours if entry else None,
        )

    # ═════════════════════════════════════════════════════════════════
    # Manual edits
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def edit_entry(
        db: AsyncSession,
        ctx: AccessContext,
        entry_id: uuid.UUID,
        data: TimeEntryEditRequest,
    ) -> TimeEntry:
        """Correct a completed entry's times or notes.

        Any time change recomputes ``total_hours`` and sends a decided entry
        back to ``pending`` with its approval outcome cleared.
        """
        entry = await TimeAccountingService.get_entry(db, ctx, entry_id)
        changes = data.model_dump(exclude_unset=True)

        errors: dict[str, list[str]] = {}
        if changes.get("break_hours") is not None and changes["break_hours"] < 0:
            errors["break_hours"] = ["break_hours cannot be negative"]
        for field in ("clock_in", "clock_out"):
            if field in changes and changes[field] is None:
                errors[field] = [f"{field} cannot be cleared"]
        if errors:
            raise ValidationException(errors)

        touches_time = any(f in changes for f in _TIME_FIELDS)
        if touches_time and entry.status != TimeEntryStatus.completed:
            raise InvalidStateException("Only completed time entries can have their times edited")

        clock_in = as_utc(changes.get("clock_in", entry.clock_in))
        clock_out = as_utc(changes.get("clock_out", entry.clock_out))
        if clock_in is not None and clock_out is not None and clock_out <= clock_in:
            raise ValidationException({"clock_out": ["clock_out must be after clock_in"]})

        before = _entry_snapshot(entry)
        if "clock_in" in changes:
            entry.clock_in = clock_in
        if "clock_out" in changes:
            entry.clock_out = clock_out
        if changes.get("break_hours") is not None:
            entry.break_hours = round(changes["break_hours"], 2)
        if "admin_notes" in changes:
            entry.admin_notes = changes["admin_notes"]

        after = _entry_snapshot(entry)
        time_changed = any(before[f] != after[f] for f in _TIME_FIELDS)
        if time_changed:
            entry.total_hours = _worked_hours(entry.clock_in, entry.clock_out, entry.break_hours)
            if entry.approval_status != ApprovalStatus.pending:
                # Reset edge: a decided timesheet goes back for re-approval.
                entry.approval_status = ApprovalStatus.pending
                entry.approved_by = None
                entry.approved_at = None
                entry.approved_hours = None
                entry.approved_rate = None
                entry.total_pay = None
                entry.rejection_reason = None

        await db.flush()
        await create_audit_entry(
            db,
            tenant_id=ctx.tenant_id,
            action="manual_edit",
            entity_type="time_entry",
            entity_id=entry.id,
            actor_id=ctx.user_id,
            old_values=before,
            new_values=_entry_snapshot(entry),
        )
        logger.info("Time entry %s edited by %s", entry.id, ctx.user_id)
        return entry

    @staticmethod
    async def set_break_hours(
        db: AsyncSession, ctx: AccessContext, entry_id: uuid.UUID, break_hours: float,
    ) -> TimeEntry:
        return await TimeAccountingService.edit_entry(
            db, ctx, entry_id, TimeEntryEditRequest(break_hours=break_hours),
        )

    # ═════════════════════════════════════════════════════════════════
    # Timesheet read model
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def timesheet(
        db: AsyncSession,
        ctx: AccessContext,
        start_date: date,
        end_date: date,
        *,
        employee_id: Optional[uuid.UUID] = None,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> list[TimesheetRow]:
        """Entries in ``[start_date, end_date]`` with their scheduled shape and discrepancies."""
        if end_date < start_date:
            raise ValidationException({"end_date": ["end_date must be on or after start_date"]})

        query = (
            select(TimeEntry)
            .join(Employee, Employee.id == TimeEntry.employee_id)
            .options(
                selectinload(TimeEntry.employee),
                selectinload(TimeEntry.shift_assignment).selectinload(ShiftAssignment.template),
            )
            .where(
                TimeEntry.tenant_id == ctx.tenant_id,
                TimeEntry.date >= start_date,
                TimeEntry.date <= end_date,
            )
            .order_by(TimeEntry.date.desc(), TimeEntry.clock_in.desc())
        )
        if ctx.role == UserRole.employee:
            query = query.where(TimeEntry.employee_id == ctx.user_id)
        elif ctx.is_manager:
            query = query.where(Employee.location_id.in_(list(ctx.location_ids)))
        if employee_id is not None:
            query = query.where(TimeEntry.employee_id == employee_id)
        if approval_status is not None:
            query = query.where(TimeEntry.approval_status == approval_status)

        rows: list[TimesheetRow] = []
        for entry in (await db.execute(query)).scalars().all():
            assignment = entry.shift_assignment
            shape = resolve_shape(assignment, assignment.template) if assignment else None
            rows.append(TimesheetRow(
                entry=TimeEntryOut.model_validate(entry),
                employee=EmployeeBrief.model_validate(entry.employee),
                scheduled_shift=shape_out(shape),
                discrepancies=[
                    DiscrepancyOut(
                        type=d.type, severity=d.severity, message=d.message, minutes=d.minutes,
                    )
                    for d in detect(entry, shape)
                ],
            ))
        return rows
