"""Approval workflow test suite — timesheets, leave, swaps, queue, bulk approve."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.approvals.models import ApprovalHistory
from rotaflow.approvals.schemas import QueueKind
from rotaflow.approvals.service import ApprovalService
from rotaflow.common.audit import AuditTrail
from rotaflow.common.constants import (
    LEAVE_CANCELLATION_REASON,
    ApprovalEntity,
    ApprovalStatus,
    AssignmentStatus,
    Decision,
    LeaveType,
    RequestStatus,
)
from rotaflow.common.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from rotaflow.leave.schemas import LeaveRequestCreate
from rotaflow.leave.service import LeaveService
from rotaflow.notifications.models import Notification
from rotaflow.notifications.outbox import dispatch_pending
from rotaflow.scheduling.schemas import AssignmentCreate
from rotaflow.scheduling.service import SchedulingService
from rotaflow.swaps.schemas import SwapRequestCreate
from rotaflow.swaps.service import SwapService
from rotaflow.timekeeping.service import TimeAccountingService
from tests.conftest import (
    allow_manager_approvals,
    context_for,
    seed_employee,
    seed_location,
    seed_template,
)

MONDAY = date(2026, 3, 2)
DECIDED_AT = datetime(2026, 3, 3, 10, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, *, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


async def _completed_entry(db: AsyncSession, ctx, *, start=None, end=None):
    entry = await TimeAccountingService.clock_in(db, ctx, now=start or at(9))
    await TimeAccountingService.clock_out(db, ctx, now=end or at(17))
    return entry


async def _titles(db: AsyncSession, recipient_id) -> list[str]:
    await dispatch_pending(db)
    result = await db.execute(
        select(Notification.title).where(Notification.recipient_id == recipient_id)
    )
    return list(result.scalars().all())


async def _history(db: AsyncSession, entity_id) -> list[ApprovalHistory]:
    result = await db.execute(
        select(ApprovalHistory).where(ApprovalHistory.entity_id == entity_id)
    )
    return list(result.scalars().all())


# ═════════════════════════════════════════════════════════════════════
# Timesheet decisions
# ═════════════════════════════════════════════════════════════════════


class TestTimesheetDecision:

    async def test_approve_uses_worked_hours_and_employee_rate(
        self, db: AsyncSession, admin, admin_ctx, employee, employee_ctx,
    ):
        entry = await _completed_entry(db, employee_ctx)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve,
            notes="Looks right", now=DECIDED_AT,
        )

        assert decided.approval_status == ApprovalStatus.approved
        assert decided.approved_hours == 8.0
        assert decided.approved_rate == 12.5
        assert decided.total_pay == 100.0
        assert decided.approved_by == admin.id
        assert decided.admin_notes == "Looks right"
        assert "Shift Approved" in await _titles(db, employee.id)

    async def test_approve_with_overrides(self, db: AsyncSession, admin_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve,
            approved_hours=7.0, approved_rate=20.0, now=DECIDED_AT,
        )

        assert decided.total_pay == 140.0

    async def test_edit_recomputes_hours_then_prices(self, db: AsyncSession, admin_ctx, employee, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.edit,
            clock_out=at(18), break_hours=0.5, now=DECIDED_AT,
        )

        assert decided.approval_status == ApprovalStatus.edited
        assert decided.total_hours == 8.5
        assert decided.approved_hours == 8.5
        assert decided.total_pay == 106.25
        assert "Shift Edited" in await _titles(db, employee.id)

    async def test_edit_rejects_reversed_times_without_mutating(self, db: AsyncSession, admin_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)

        with pytest.raises(ValidationException) as exc_info:
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.edit,
                clock_out=at(8), now=DECIDED_AT,
            )

        assert exc_info.value.errors[0]["field"] == "clock_out"
        assert entry.approval_status == ApprovalStatus.pending
        assert entry.total_hours == 8.0

    async def test_reject_requires_reason(self, db: AsyncSession, admin_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)

        with pytest.raises(ValidationException) as exc_info:
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.reject,
                rejection_reason="   ", now=DECIDED_AT,
            )
        assert exc_info.value.errors[0]["field"] == "rejection_reason"

    async def test_reject_records_reason_and_no_pay(self, db: AsyncSession, admin_ctx, employee, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.reject,
            rejection_reason="Clocked from home", now=DECIDED_AT,
        )

        assert decided.approval_status == ApprovalStatus.rejected
        assert decided.rejection_reason == "Clocked from home"
        assert decided.total_pay is None
        assert "Shift Rejected" in await _titles(db, employee.id)

    async def test_decision_is_final(self, db: AsyncSession, admin_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)
        await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve, now=DECIDED_AT,
        )

        with pytest.raises(InvalidStateException):
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.reject,
                rejection_reason="Changed my mind", now=DECIDED_AT,
            )

    async def test_open_entry_cannot_be_decided(self, db: AsyncSession, admin_ctx, employee_ctx):
        entry = await TimeAccountingService.clock_in(db, employee_ctx, now=at(9))

        with pytest.raises(InvalidStateException) as exc_info:
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve, now=DECIDED_AT,
            )
        assert exc_info.value.detail == "Cannot decide a shift that is still clocked in"

    async def test_unknown_entry(self, db: AsyncSession, admin_ctx):
        with pytest.raises(NotFoundException):
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.timesheet, uuid.uuid4(), Decision.approve,
            )

    async def test_history_row_per_decision(self, db: AsyncSession, admin, admin_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)
        await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve, now=DECIDED_AT,
        )

        rows = await _history(db, entry.id)
        assert len(rows) == 1
        assert rows[0].entity_type == ApprovalEntity.timesheet
        assert rows[0].status == "approved"
        assert rows[0].approver_id == admin.id
        assert rows[0].total_pay == 100.0


# ═════════════════════════════════════════════════════════════════════
# Who may decide
# ═════════════════════════════════════════════════════════════════════


class TestManagerAuthority:

    async def test_manager_blocked_while_setting_disabled(self, db: AsyncSession, manager_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)

        with pytest.raises(ForbiddenException) as exc_info:
            await ApprovalService.decide(
                db, manager_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve,
            )
        assert exc_info.value.detail == "Manager approvals are disabled for this organisation."

    async def test_manager_decides_once_enabled(self, db: AsyncSession, manager, manager_ctx, employee_ctx):
        await allow_manager_approvals(db)
        entry = await _completed_entry(db, employee_ctx)

        decided = await ApprovalService.decide(
            db, manager_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve, now=DECIDED_AT,
        )
        assert decided.approved_by == manager.id

    async def test_manager_limited_to_own_locations(self, db: AsyncSession, manager_ctx):
        await allow_manager_approvals(db)
        elsewhere = await seed_location(db, name="Bristol")
        outsider = await seed_employee(db, first_name="Out", location_id=elsewhere.id)
        entry = await _completed_entry(db, context_for(outsider))

        with pytest.raises(ForbiddenException) as exc_info:
            await ApprovalService.decide(
                db, manager_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve,
            )
        assert exc_info.value.detail == "You can only decide requests for your assigned locations."

    async def test_employee_cannot_decide(self, db: AsyncSession, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)
        with pytest.raises(ForbiddenException):
            await ApprovalService.decide(
                db, employee_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve,
            )


# ═════════════════════════════════════════════════════════════════════
# Bulk approve
# ═════════════════════════════════════════════════════════════════════


class TestBulkApprove:

    async def test_partial_success_counts_only_approved(
        self, db: AsyncSession, admin_ctx, employee, employee_ctx, location,
    ):
        colleague = await seed_employee(db, first_name="Col", location_id=location.id)
        first = await _completed_entry(db, employee_ctx)
        second = await _completed_entry(db, context_for(colleague))

        result = await ApprovalService.bulk_approve(
            db, admin_ctx, [first.id, second.id, uuid.uuid4()], now=DECIDED_AT,
        )

        assert result.approved_count == 2
        assert result.total_requested == 3
        assert first.approval_status == ApprovalStatus.approved
        assert second.total_pay == 100.0

        audits = await db.execute(select(AuditTrail).where(AuditTrail.action == "bulk_approve"))
        assert len(audits.scalars().all()) == 2
        assert await _titles(db, employee.id) == ["Timesheet Entry Approved"]

    async def test_already_decided_entries_are_skipped(self, db: AsyncSession, admin_ctx, employee_ctx):
        entry = await _completed_entry(db, employee_ctx)
        await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.timesheet, entry.id, Decision.approve, now=DECIDED_AT,
        )

        result = await ApprovalService.bulk_approve(db, admin_ctx, [entry.id], now=DECIDED_AT)
        assert result.approved_count == 0

    async def test_empty_selection_rejected(self, db: AsyncSession, admin_ctx):
        with pytest.raises(ValidationException):
            await ApprovalService.bulk_approve(db, admin_ctx, [])


# ═════════════════════════════════════════════════════════════════════
# Leave decisions
# ═════════════════════════════════════════════════════════════════════


async def _leave(db: AsyncSession, ctx, start: date, end: date):
    return await LeaveService.submit(
        db, ctx,
        LeaveRequestCreate(leave_type=LeaveType.vacation, start_date=start, end_date=end, days_requested=2),
        now=at(8, day=date(2026, 2, 20)),
    )


class TestLeaveDecision:

    async def test_approval_cancels_shifts_in_range(self, db: AsyncSession, admin_ctx, employee, employee_ctx):
        template = await seed_template(db)
        inside = await SchedulingService.assign(
            db, admin_ctx, AssignmentCreate(employee_id=employee.id, date=MONDAY, template_id=template.id),
        )
        scheduled = await SchedulingService.assign(
            db, admin_ctx,
            AssignmentCreate(employee_id=employee.id, date=date(2026, 3, 3), template_id=template.id),
        )
        scheduled.status = AssignmentStatus.scheduled
        await db.flush()
        outside = await SchedulingService.assign(
            db, admin_ctx,
            AssignmentCreate(employee_id=employee.id, date=date(2026, 3, 4), template_id=template.id),
        )
        leave_request = await _leave(db, employee_ctx, MONDAY, date(2026, 3, 3))

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.leave_request, leave_request.id, Decision.approve,
            notes="Enjoy", now=DECIDED_AT,
        )

        assert decided.status == RequestStatus.approved
        assert decided.manager_notes == "Enjoy"
        assert inside.status == AssignmentStatus.cancelled
        assert inside.cancellation_reason == LEAVE_CANCELLATION_REASON
        assert scheduled.status == AssignmentStatus.cancelled
        assert scheduled.cancellation_reason == LEAVE_CANCELLATION_REASON
        assert outside.status == AssignmentStatus.assigned
        assert "Leave Request Approved" in await _titles(db, employee.id)

    async def test_rejection_keeps_shifts(self, db: AsyncSession, admin_ctx, employee, employee_ctx):
        template = await seed_template(db)
        shift = await SchedulingService.assign(
            db, admin_ctx, AssignmentCreate(employee_id=employee.id, date=MONDAY, template_id=template.id),
        )
        leave_request = await _leave(db, employee_ctx, MONDAY, MONDAY)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.leave_request, leave_request.id, Decision.reject,
            rejection_reason="Peak week", now=DECIDED_AT,
        )

        assert decided.status == RequestStatus.rejected
        assert decided.rejection_reason == "Peak week"
        assert shift.status == AssignmentStatus.assigned
        rows = await _history(db, leave_request.id)
        assert [r.notes for r in rows] == ["Peak week"]

    async def test_edit_is_timesheet_only(self, db: AsyncSession, admin_ctx, employee_ctx):
        leave_request = await _leave(db, employee_ctx, MONDAY, MONDAY)

        with pytest.raises(ValidationException) as exc_info:
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.leave_request, leave_request.id, Decision.edit,
            )
        assert exc_info.value.errors[0]["field"] == "action"


# ═════════════════════════════════════════════════════════════════════
# Shift swap decisions
# ═════════════════════════════════════════════════════════════════════


class TestSwapDecision:

    async def _pair(self, db: AsyncSession, admin_ctx, employee, location):
        colleague = await seed_employee(db, first_name="Col", location_id=location.id)
        early = await seed_template(db, name="Early", start=time(6), end=time(14))
        late = await seed_template(db, name="Late", start=time(14), end=time(22))
        mine = await SchedulingService.assign(
            db, admin_ctx, AssignmentCreate(employee_id=employee.id, date=MONDAY, template_id=early.id),
        )
        theirs = await SchedulingService.assign(
            db, admin_ctx,
            AssignmentCreate(
                employee_id=colleague.id, date=MONDAY, template_id=late.id, notes="Covering tills",
            ),
        )
        swap = await SwapService.request(
            db, context_for(employee),
            SwapRequestCreate(target_employee_id=colleague.id, swap_date=MONDAY, reason="Appointment"),
        )
        return colleague, early, late, mine, theirs, swap

    async def test_approval_exchanges_shift_shapes(self, db: AsyncSession, admin_ctx, employee, location):
        colleague, early, late, mine, theirs, swap = await self._pair(db, admin_ctx, employee, location)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.shift_swap, swap.id, Decision.approve, now=DECIDED_AT,
        )

        assert decided.status == RequestStatus.approved
        assert mine.template_id == late.id
        assert theirs.template_id == early.id
        assert mine.notes == "Covering tills"
        assert theirs.notes is None
        assert mine.employee_id == employee.id
        assert "Shift Swap Approved" in await _titles(db, colleague.id)
        assert "Shift Swap Approved" in await _titles(db, employee.id)

    async def test_rejection_leaves_shifts_alone(self, db: AsyncSession, admin_ctx, employee, location):
        colleague, early, late, mine, theirs, swap = await self._pair(db, admin_ctx, employee, location)

        decided = await ApprovalService.decide(
            db, admin_ctx, ApprovalEntity.shift_swap, swap.id, Decision.reject,
            rejection_reason="Skills mismatch", now=DECIDED_AT,
        )

        assert decided.status == RequestStatus.rejected
        assert mine.template_id == early.id
        assert theirs.template_id == late.id

    async def test_cancelled_shift_blocks_approval(self, db: AsyncSession, admin_ctx, employee, location):
        colleague, early, late, mine, theirs, swap = await self._pair(db, admin_ctx, employee, location)
        theirs.status = AssignmentStatus.cancelled
        await db.flush()

        with pytest.raises(InvalidStateException) as exc_info:
            await ApprovalService.decide(
                db, admin_ctx, ApprovalEntity.shift_swap, swap.id, Decision.approve, now=DECIDED_AT,
            )
        assert exc_info.value.detail == "One of the shifts in this swap has been cancelled"
        assert swap.status == RequestStatus.pending

    async def _cross_location_swap(self, db: AsyncSession, admin_ctx, employee):
        elsewhere = await seed_location(db, name="Bristol")
        outsider = await seed_employee(db, first_name="Out", location_id=elsewhere.id)
        early = await seed_template(db, name="Early", start=time(6), end=time(14))
        late = await seed_template(db, name="Late", start=time(14), end=time(22))
        mine = await SchedulingService.assign(
            db, admin_ctx, AssignmentCreate(employee_id=employee.id, date=MONDAY, template_id=early.id),
        )
        theirs = await SchedulingService.assign(
            db, admin_ctx, AssignmentCreate(employee_id=outsider.id, date=MONDAY, template_id=late.id),
        )
        swap = await SwapService.request(
            db, context_for(employee),
            SwapRequestCreate(target_employee_id=outsider.id, swap_date=MONDAY, reason="Childcare"),
        )
        return early, late, mine, theirs, swap

    async def test_manager_cannot_decide_swap_with_target_elsewhere(
        self, db: AsyncSession, admin_ctx, manager_ctx, employee,
    ):
        await allow_manager_approvals(db)
        early, late, mine, theirs, swap = await self._cross_location_swap(db, admin_ctx, employee)

        with pytest.raises(ForbiddenException):
            await ApprovalService.decide(
                db, manager_ctx, ApprovalEntity.shift_swap, swap.id, Decision.approve, now=DECIDED_AT,
            )

        assert swap.status == RequestStatus.pending
        assert mine.template_id == early.id
        assert theirs.template_id == late.id

    async def test_cross_location_swap_left_out_of_manager_queue(
        self, db: AsyncSession, admin_ctx, manager_ctx, employee,
    ):
        *_, swap = await self._cross_location_swap(db, admin_ctx, employee)

        manager_queue = await ApprovalService.pending(db, manager_ctx, QueueKind.shift_swaps)
        admin_queue = await ApprovalService.pending(db, admin_ctx, QueueKind.shift_swaps)

        assert manager_queue.shift_swaps == []
        assert [s.id for s in admin_queue.shift_swaps] == [swap.id]


# ═════════════════════════════════════════════════════════════════════
# Pending queue
# ═════════════════════════════════════════════════════════════════════


class TestPendingQueue:

    async def test_admin_sees_completed_pending_work(self, db: AsyncSession, admin_ctx, employee_ctx, location):
        done = await _completed_entry(db, employee_ctx)
        colleague = await seed_employee(db, first_name="Col", location_id=location.id)
        await TimeAccountingService.clock_in(db, context_for(colleague), now=at(9))
        await _leave(db, employee_ctx, MONDAY, MONDAY)

        queue = await ApprovalService.pending(db, admin_ctx)

        assert [t.id for t in queue.timesheets] == [done.id]
        assert len(queue.leave_requests) == 1
        assert queue.shift_swaps == []

    async def test_kind_filter(self, db: AsyncSession, admin_ctx, employee_ctx):
        await _completed_entry(db, employee_ctx)
        await _leave(db, employee_ctx, MONDAY, MONDAY)

        queue = await ApprovalService.pending(db, admin_ctx, QueueKind.leave_requests)

        assert queue.timesheets == []
        assert len(queue.leave_requests) == 1

    async def test_manager_queue_scoped_to_locations(self, db: AsyncSession, manager_ctx, employee_ctx):
        await _completed_entry(db, employee_ctx)
        elsewhere = await seed_location(db, name="Bristol")
        outsider = await seed_employee(db, first_name="Out", location_id=elsewhere.id)
        await _completed_entry(db, context_for(outsider))

        queue = await ApprovalService.pending(db, manager_ctx)

        assert [t.employee_id for t in queue.timesheets] == [employee_ctx.user_id]

    async def test_manager_without_locations(self, db: AsyncSession, manager):
        with pytest.raises(ForbiddenException) as exc_info:
            await ApprovalService.pending(db, context_for(manager))
        assert exc_info.value.detail == "No locations assigned to this manager"

    async def test_employee_has_no_queue(self, db: AsyncSession, employee_ctx):
        with pytest.raises(ForbiddenException):
            await ApprovalService.pending(db, employee_ctx)
