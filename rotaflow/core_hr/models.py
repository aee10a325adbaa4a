"""Core HR ORM models: Location, Employee, ManagerLocation, TenantSettings.

These are read models for the scheduling engine: employees, locations and
manager scope are maintained elsewhere, the engine only reads them (and flips
the employee presence flag on clock-in/out).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rotaflow.common.audit import TimestampMixin
from rotaflow.common.constants import PayPeriodType, UserRole
from rotaflow.common.types import UUIDType, enum_column
from rotaflow.database import Base


# ═════════════════════════════════════════════════════════════════════
# Location
# ═════════════════════════════════════════════════════════════════════


class Location(Base, TimestampMixin):
    """Work-site an employee belongs to and a manager may be scoped to."""

    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "name", name="uq_locations_tenant_name"),
    )

    def __repr__(self) -> str:
        return f"<Location {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base, TimestampMixin):
    """A schedulable person; also the identity behind every caller."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True))
    location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("locations.id"),
    )
    employee_code: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), default=UserRole.employee, nullable=False,
    )
    hourly_rate: Mapped[float] = mapped_column(
        sa.Numeric(10, 2, asdecimal=False), default=0, nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    is_online: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    last_online: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Relationships ───────────────────────────────────────────────
    location: Mapped[Optional[Location]] = relationship()

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "email", name="uq_employees_tenant_email"),
        sa.UniqueConstraint("tenant_id", "employee_code", name="uq_employees_tenant_code"),
        sa.Index("ix_employees_tenant_location", "tenant_id", "location_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code} {self.full_name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Manager scope + tenant settings
# ═════════════════════════════════════════════════════════════════════


class ManagerLocation(Base):
    """Grants a manager authority over one location."""

    __tablename__ = "manager_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    manager_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False,
    )

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "manager_id", "location_id", name="uq_manager_locations"),
    )


class TenantSettings(Base, TimestampMixin):
    """Per-tenant approval and pay-period configuration."""

    __tablename__ = "tenant_settings"

    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), primary_key=True)
    allow_manager_approvals: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    pay_period_type: Mapped[PayPeriodType] = mapped_column(
        enum_column(PayPeriodType, "pay_period_type"), default=PayPeriodType.weekly, nullable=False,
    )
    custom_period_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    week_start_day: Mapped[int] = mapped_column(sa.Integer, default=1, nullable=False)
