"""Leave request submission and listing. Decisions live in the approvals module."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rotaflow.auth.context import AccessContext
from rotaflow.common.constants import LeaveType, RequestStatus, UserRole
from rotaflow.common.exceptions import ConflictError, ValidationException
from rotaflow.common.filters import apply_filters
from rotaflow.common.time_utils import utcnow
from rotaflow.core_hr.models import Employee
from rotaflow.core_hr.service import EmployeeQueries
from rotaflow.leave.models import LeaveRequest
from rotaflow.leave.schemas import LeaveRequestCreate
from rotaflow.notifications.service import notify_leave_submitted

logger = logging.getLogger(__name__)

_LIVE_STATUSES = (RequestStatus.pending, RequestStatus.approved)


class LeaveService:

    @staticmethod
    async def submit(
        db: AsyncSession,
        ctx: AccessContext,
        data: LeaveRequestCreate,
        *,
        now: Optional[datetime] = None,
    ) -> LeaveRequest:
        """File a pending leave request.

        - Start date may not be in the past.
        - No overlap with the employee's pending or approved requests.
        - Every tenant admin is notified.
        """
        employee = await EmployeeQueries.get(db, ctx.tenant_id, data.employee_id or ctx.user_id)
        ctx.ensure_can_act_for(employee)

        today = (now or utcnow()).date()
        if data.start_date < today:
            raise ValidationException({"start_date": ["Start date cannot be in the past"]})

        overlap = await db.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.tenant_id == ctx.tenant_id,
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status.in_(_LIVE_STATUSES),
                LeaveRequest.start_date <= data.end_date,
                LeaveRequest.end_date >= data.start_date,
            )
        )
        if overlap.first() is not None:
            raise ConflictError(
                "start_date", data.start_date.isoformat(),
                detail="Leave request overlaps with existing approved or pending request",
            )

        leave_request = LeaveRequest(
            tenant_id=ctx.tenant_id,
            employee_id=employee.id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            days_requested=data.days_requested,
            reason=data.reason,
            status=RequestStatus.pending,
            employee=employee,
        )
        db.add(leave_request)
        await db.flush()

        admin_ids = await EmployeeQueries.admin_ids(db, ctx.tenant_id)
        notify_leave_submitted(
            db, leave_request, employee_name=employee.full_name, admin_ids=admin_ids,
        )
        logger.info(
            "Leave request %s submitted for %s (%s..%s)",
            leave_request.id, employee.id, data.start_date, data.end_date,
        )
        return leave_request

    @staticmethod
    async def list(
        db: AsyncSession,
        ctx: AccessContext,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[RequestStatus] = None,
        leave_type: Optional[LeaveType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[LeaveRequest]:
        """Employees see their own requests; managers their locations; admins the tenant."""
        query = (
            select(LeaveRequest)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .options(selectinload(LeaveRequest.employee))
            .where(LeaveRequest.tenant_id == ctx.tenant_id)
            .order_by(LeaveRequest.created_at.desc())
        )
        if ctx.role == UserRole.employee:
            query = query.where(LeaveRequest.employee_id == ctx.user_id)
        elif ctx.is_manager:
            query = query.where(Employee.location_id.in_(list(ctx.location_ids)))

        # Overlap semantics: a request touching the window is included.
        query = apply_filters(query, LeaveRequest, {
            "employee_id": employee_id,
            "status": status,
            "leave_type": leave_type,
            "end_date__from": start_date,
            "start_date__to": end_date,
        })

        return list((await db.execute(query)).scalars().all())
