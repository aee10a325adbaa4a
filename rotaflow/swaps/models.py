"""Shift swap ORM model: ShiftSwapRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rotaflow.common.audit import TimestampMixin
from rotaflow.common.constants import RequestStatus
from rotaflow.common.types import UUIDType, enum_column
from rotaflow.core_hr.models import Employee
from rotaflow.database import Base
from rotaflow.scheduling.models import ShiftAssignment


class ShiftSwapRequest(Base, TimestampMixin):
    """Requester asks to trade their shift on ``swap_date`` with the target's."""

    __tablename__ = "shift_swap_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    swap_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    original_shift_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("shift_assignments.id", ondelete="CASCADE"), nullable=False,
    )
    requested_shift_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("shift_assignments.id", ondelete="CASCADE"), nullable=False,
    )
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        enum_column(RequestStatus, "request_status"),
        default=RequestStatus.pending,
        nullable=False,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # Relationships
    requester: Mapped[Employee] = relationship(foreign_keys=[requester_id])
    target: Mapped[Employee] = relationship(foreign_keys=[target_id])
    original_shift: Mapped[ShiftAssignment] = relationship(foreign_keys=[original_shift_id])
    requested_shift: Mapped[ShiftAssignment] = relationship(foreign_keys=[requested_shift_id])

    __table_args__ = (
        sa.CheckConstraint("requester_id <> target_id", name="ck_shift_swaps_distinct_parties"),
        sa.Index("ix_shift_swap_requests_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<ShiftSwapRequest {self.requester_id}->{self.target_id} {self.swap_date}>"
