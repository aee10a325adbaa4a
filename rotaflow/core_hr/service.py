"""Core HR read queries and tenant settings."""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.common.constants import PayPeriodType, UserRole
from rotaflow.common.exceptions import NotFoundException, ValidationException
from rotaflow.core_hr.models import Employee, ManagerLocation, TenantSettings

logger = logging.getLogger(__name__)


class EmployeeQueries:
    """Typed lookups over the employee read model, always tenant-scoped."""

    @staticmethod
    async def get(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> Employee:
        query = select(Employee).where(
            Employee.id == employee_id,
            Employee.tenant_id == tenant_id,
        )
        if active_only:
            query = query.where(Employee.is_active.is_(True))
        employee = (await db.execute(query)).scalars().first()
        if employee is None:
            raise NotFoundException("Employee", employee_id)
        return employee

    @staticmethod
    async def admin_ids(db: AsyncSession, tenant_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of every active admin in the tenant (approval notification fan-out)."""
        result = await db.execute(
            select(Employee.id).where(
                Employee.tenant_id == tenant_id,
                Employee.role == UserRole.admin,
                Employee.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def manager_location_ids(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        manager_id: uuid.UUID,
    ) -> Sequence[uuid.UUID]:
        result = await db.execute(
            select(ManagerLocation.location_id).where(
                ManagerLocation.tenant_id == tenant_id,
                ManagerLocation.manager_id == manager_id,
            )
        )
        return result.scalars().all()


class TenantSettingsService:
    """Read and update per-tenant approval settings."""

    @staticmethod
    async def get(db: AsyncSession, tenant_id: uuid.UUID) -> TenantSettings:
        """Return the tenant's settings, or unsaved defaults when none exist."""
        result = await db.execute(
            select(TenantSettings).where(TenantSettings.tenant_id == tenant_id)
        )
        current = result.scalars().first()
        if current is None:
            return TenantSettings(
                tenant_id=tenant_id,
                allow_manager_approvals=False,
                pay_period_type=PayPeriodType.weekly,
                custom_period_days=None,
                week_start_day=1,
            )
        return current

    @staticmethod
    async def update(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        *,
        allow_manager_approvals: Optional[bool] = None,
        pay_period_type: Optional[PayPeriodType] = None,
        custom_period_days: Optional[int] = None,
        week_start_day: Optional[int] = None,
    ) -> TenantSettings:
        """Upsert the tenant's settings row."""
        errors: dict[str, list[str]] = {}
        effective_type = pay_period_type
        if effective_type == PayPeriodType.custom and not custom_period_days:
            errors.setdefault("custom_period_days", []).append(
                "custom_period_days is required for a custom pay period."
            )
        if week_start_day is not None and not 0 <= week_start_day <= 6:
            errors.setdefault("week_start_day", []).append("week_start_day must be between 0 and 6.")
        if errors:
            raise ValidationException(errors)

        result = await db.execute(
            select(TenantSettings).where(TenantSettings.tenant_id == tenant_id)
        )
        current = result.scalars().first()
        if current is None:
            current = TenantSettings(
                tenant_id=tenant_id,
                allow_manager_approvals=False,
                pay_period_type=PayPeriodType.weekly,
                week_start_day=1,
            )
            db.add(current)

        if allow_manager_approvals is not None:
            current.allow_manager_approvals = allow_manager_approvals
        if pay_period_type is not None:
            current.pay_period_type = pay_period_type
            current.custom_period_days = (
                custom_period_days if pay_period_type == PayPeriodType.custom else None
            )
        if week_start_day is not None:
            current.week_start_day = week_start_day

        await db.flush()
        logger.info(
            "Tenant %s settings updated: manager approvals=%s",
            tenant_id, current.allow_manager_approvals,
        )
        return current
