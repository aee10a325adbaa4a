"""Shift swap request submission and listing."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rotaflow.auth.context import AccessContext
from rotaflow.common.constants import AssignmentStatus, RequestStatus, UserRole
from rotaflow.common.exceptions import ConflictError, ValidationException
from rotaflow.common.filters import apply_filters
from rotaflow.core_hr.models import Employee
from rotaflow.core_hr.service import EmployeeQueries
from rotaflow.notifications.service import notify_swap_requested
from rotaflow.scheduling.models import ShiftAssignment
from rotaflow.swaps.models import ShiftSwapRequest
from rotaflow.swaps.schemas import SwapRequestCreate

logger = logging.getLogger(__name__)


async def _shift_on(
    db: AsyncSession, tenant_id: uuid.UUID, employee_id: uuid.UUID, on: date,
) -> Optional[ShiftAssignment]:
    result = await db.execute(
        select(ShiftAssignment).where(
            ShiftAssignment.tenant_id == tenant_id,
            ShiftAssignment.employee_id == employee_id,
            ShiftAssignment.date == on,
            ShiftAssignment.status != AssignmentStatus.cancelled,
        )
    )
    return result.scalars().first()


class SwapService:

    @staticmethod
    async def request(
        db: AsyncSession, ctx: AccessContext, data: SwapRequestCreate,
    ) -> ShiftSwapRequest:
        """Ask to trade the caller's shift on ``swap_date`` with the target's shift."""
        requester = await EmployeeQueries.get(db, ctx.tenant_id, ctx.user_id)
        target = await EmployeeQueries.get(db, ctx.tenant_id, data.target_employee_id)
        if target.id == requester.id:
            raise ValidationException({"target_employee_id": ["You cannot swap shifts with yourself"]})

        original = await _shift_on(db, ctx.tenant_id, requester.id, data.swap_date)
        if original is None:
            raise ValidationException({
                "swap_date": ["You do not have a shift assigned on the requested date"],
            })
        requested = await _shift_on(db, ctx.tenant_id, target.id, data.swap_date)
        if requested is None:
            raise ValidationException({
                "swap_date": ["Target employee does not have a shift assigned on the requested date"],
            })

        existing = await db.execute(
            select(ShiftSwapRequest.id).where(
                ShiftSwapRequest.tenant_id == ctx.tenant_id,
                ShiftSwapRequest.original_shift_id == original.id,
                ShiftSwapRequest.requested_shift_id == requested.id,
                ShiftSwapRequest.status == RequestStatus.pending,
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                "swap_date", data.swap_date.isoformat(),
                detail="A swap request already exists for these shifts",
            )

        swap = ShiftSwapRequest(
            tenant_id=ctx.tenant_id,
            requester_id=requester.id,
            target_id=target.id,
            swap_date=data.swap_date,
            original_shift_id=original.id,
            requested_shift_id=requested.id,
            reason=data.reason,
            status=RequestStatus.pending,
            requester=requester,
            target=target,
        )
        db.add(swap)
        await db.flush()

        notify_swap_requested(
            db, swap, requester_name=requester.full_name, target_name=target.full_name,
        )
        logger.info("Swap request %s: %s <-> %s on %s", swap.id, requester.id, target.id, data.swap_date)
        return swap

    @staticmethod
    async def list(
        db: AsyncSession,
        ctx: AccessContext,
        *,
        status: Optional[RequestStatus] = None,
        swap_date: Optional[date] = None,
    ) -> list[ShiftSwapRequest]:
        """Employees see swaps they are party to; managers their locations; admins all."""
        query = (
            select(ShiftSwapRequest)
            .join(Employee, Employee.id == ShiftSwapRequest.requester_id)
            .options(
                selectinload(ShiftSwapRequest.requester),
                selectinload(ShiftSwapRequest.target),
            )
            .where(ShiftSwapRequest.tenant_id == ctx.tenant_id)
            .order_by(ShiftSwapRequest.created_at.desc())
        )
        if ctx.role == UserRole.employee:
            query = query.where(or_(
                ShiftSwapRequest.requester_id == ctx.user_id,
                ShiftSwapRequest.target_id == ctx.user_id,
            ))
        elif ctx.is_manager:
            query = query.where(Employee.location_id.in_(list(ctx.location_ids)))

        query = apply_filters(query, ShiftSwapRequest, {"status": status, "swap_date": swap_date})
        return list((await db.execute(query)).scalars().all())
