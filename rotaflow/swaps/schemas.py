"""Shift swap request schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from rotaflow.common.constants import RequestStatus
from rotaflow.core_hr.schemas import EmployeeBrief


class SwapRequestCreate(BaseModel):
    target_employee_id: uuid.UUID
    swap_date: date
    reason: str = Field(min_length=1)


class SwapRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    requester_id: uuid.UUID
    target_id: uuid.UUID
    swap_date: date
    original_shift_id: uuid.UUID
    requested_shift_id: uuid.UUID
    reason: str
    status: RequestStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    manager_notes: Optional[str] = None
    created_at: datetime
    requester: Optional[EmployeeBrief] = None
    target: Optional[EmployeeBrief] = None
