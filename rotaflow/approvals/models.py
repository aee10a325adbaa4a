"""Approval history ORM model — append-only decision log."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from rotaflow.common.constants import ApprovalEntity
from rotaflow.common.time_utils import utcnow
from rotaflow.common.types import UUIDType, enum_column
from rotaflow.database import Base


class ApprovalHistory(Base):
    """One row per decision. The owning entity mirrors its latest row."""

    __tablename__ = "approval_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    entity_type: Mapped[ApprovalEntity] = mapped_column(
        enum_column(ApprovalEntity, "approval_entity"), nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_hours: Mapped[Optional[float]] = mapped_column(sa.Float)
    approved_rate: Mapped[Optional[float]] = mapped_column(sa.Float)
    total_pay: Mapped[Optional[float]] = mapped_column(sa.Float)
    decided_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow,
    )

    __table_args__ = (
        sa.Index("ix_approval_history_entity", "tenant_id", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.entity_type.value}/{self.entity_id} {self.status}>"
