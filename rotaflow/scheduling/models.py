"""Scheduling ORM models: ShiftTemplate, Rota, ShiftAssignment."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rotaflow.common.audit import TimestampMixin
from rotaflow.common.constants import AssignmentStatus, RotaStatus
from rotaflow.common.types import UUIDType, enum_column
from rotaflow.core_hr.models import Employee
from rotaflow.database import Base


# ═════════════════════════════════════════════════════════════════════
# ShiftTemplate
# ═════════════════════════════════════════════════════════════════════


class ShiftTemplate(Base, TimestampMixin):
    """Reusable shift shape. Soft-deleted via ``is_active``."""

    __tablename__ = "shift_templates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    color: Mapped[str] = mapped_column(sa.String(20), default="#3B82F6", nullable=False)
    required_staff: Mapped[int] = mapped_column(sa.Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id"),
    )

    def __repr__(self) -> str:
        return f"<ShiftTemplate {self.name!r} {self.start_time}-{self.end_time}>"


# ═════════════════════════════════════════════════════════════════════
# Rota
# ═════════════════════════════════════════════════════════════════════


class Rota(Base, TimestampMixin):
    """Named weekly container of assignments with a draft/published lifecycle."""

    __tablename__ = "rotas"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    week_start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[RotaStatus] = mapped_column(
        enum_column(RotaStatus, "rota_status"), default=RotaStatus.draft, nullable=False,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id"),
    )

    __table_args__ = (
        sa.Index("ix_rotas_tenant_week", "tenant_id", "week_start_date"),
    )

    def __repr__(self) -> str:
        return f"<Rota {self.name!r} {self.week_start_date} {self.status.value}>"


# ═════════════════════════════════════════════════════════════════════
# ShiftAssignment
# ═════════════════════════════════════════════════════════════════════


class ShiftAssignment(Base, TimestampMixin):
    """One employee on one date, shaped by a template or by its own overrides."""

    __tablename__ = "shift_assignments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("shift_templates.id"),
    )
    override_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    override_start_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    override_end_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    override_color: Mapped[Optional[str]] = mapped_column(sa.String(20))
    status: Mapped[AssignmentStatus] = mapped_column(
        enum_column(AssignmentStatus, "assignment_status"),
        default=AssignmentStatus.assigned,
        nullable=False,
    )
    rota_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("rotas.id", ondelete="SET NULL"),
    )
    is_published: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(sa.String(255))
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id"),
    )

    # ── Relationships ───────────────────────────────────────────────
    employee: Mapped[Employee] = relationship(foreign_keys=[employee_id])
    template: Mapped[Optional[ShiftTemplate]] = relationship()
    rota: Mapped[Optional[Rota]] = relationship()

    __table_args__ = (
        sa.CheckConstraint(
            "template_id IS NOT NULL OR ("
            "override_name IS NOT NULL AND override_start_time IS NOT NULL "
            "AND override_end_time IS NOT NULL)",
            name="ck_shift_assignments_shape",
        ),
        # One live assignment per employee per day; cancelled rows don't count.
        sa.Index(
            "uq_shift_assignments_employee_day",
            "tenant_id", "employee_id", "date",
            unique=True,
            postgresql_where=sa.text("status <> 'cancelled'"),
            sqlite_where=sa.text("status <> 'cancelled'"),
        ),
        sa.Index("ix_shift_assignments_tenant_date", "tenant_id", "date"),
        sa.Index("ix_shift_assignments_rota", "rota_id"),
    )

    @property
    def has_override(self) -> bool:
        return (
            self.override_name is not None
            and self.override_start_time is not None
            and self.override_end_time is not None
        )

    def __repr__(self) -> str:
        return f"<ShiftAssignment {self.employee_id} {self.date} {self.status.value}>"
