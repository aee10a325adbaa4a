"""Time accounting ORM models: TimeEntry, BreakLog."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rotaflow.common.audit import TimestampMixin
from rotaflow.common.constants import ApprovalStatus, BreakStatus, TimeEntryStatus
from rotaflow.common.types import UUIDType, enum_column
from rotaflow.core_hr.models import Employee
from rotaflow.database import Base
from rotaflow.scheduling.models import ShiftAssignment

_OPEN_ENTRY = sa.text("status IN ('in-progress', 'break')")
_OPEN_BREAK = sa.text("status = 'active'")


class TimeEntry(Base, TimestampMixin):
    """One clock-in → clock-out span, plus its approval outcome."""

    __tablename__ = "time_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    shift_assignment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("shift_assignments.id", ondelete="SET NULL"),
    )
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    clock_in: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    clock_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    break_hours: Mapped[float] = mapped_column(sa.Float, default=0.0, nullable=False)
    max_break_hours: Mapped[float] = mapped_column(sa.Float, default=1.0, nullable=False)
    total_hours: Mapped[float] = mapped_column(sa.Float, default=0.0, nullable=False)
    status: Mapped[TimeEntryStatus] = mapped_column(
        enum_column(TimeEntryStatus, "time_entry_status"),
        default=TimeEntryStatus.in_progress,
        nullable=False,
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        enum_column(ApprovalStatus, "approval_status"),
        default=ApprovalStatus.pending,
        nullable=False,
    )

    # Approval outcome
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    approved_hours: Mapped[Optional[float]] = mapped_column(sa.Float)
    approved_rate: Mapped[Optional[float]] = mapped_column(sa.Float)
    total_pay: Mapped[Optional[float]] = mapped_column(sa.Float)
    admin_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    # End-of-shift report
    total_calls_taken: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    leads_generated: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    shift_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    performance_rating: Mapped[Optional[int]] = mapped_column(sa.Integer)

    # ── Relationships ───────────────────────────────────────────────
    employee: Mapped[Employee] = relationship(foreign_keys=[employee_id])
    shift_assignment: Mapped[Optional[ShiftAssignment]] = relationship()

    __table_args__ = (
        sa.Index(
            "uq_time_entries_open_per_employee",
            "employee_id",
            unique=True,
            postgresql_where=_OPEN_ENTRY,
            sqlite_where=_OPEN_ENTRY,
        ),
        sa.Index("ix_time_entries_tenant_date", "tenant_id", "date"),
        sa.Index("ix_time_entries_approval", "tenant_id", "approval_status"),
    )

    def __repr__(self) -> str:
        return f"<TimeEntry {self.employee_id} {self.date} {self.status.value}>"


class BreakLog(Base):
    """A single break inside a time entry."""

    __tablename__ = "break_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    time_entry_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    break_start: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    break_end: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    break_hours: Mapped[float] = mapped_column(sa.Float, default=0.0, nullable=False)
    status: Mapped[BreakStatus] = mapped_column(
        enum_column(BreakStatus, "break_status"),
        default=BreakStatus.active,
        nullable=False,
    )

    __table_args__ = (
        sa.Index(
            "uq_break_logs_open_per_employee",
            "employee_id",
            unique=True,
            postgresql_where=_OPEN_BREAK,
            sqlite_where=_OPEN_BREAK,
        ),
    )

    def __repr__(self) -> str:
        return f"<BreakLog {self.employee_id} {self.status.value}>"
