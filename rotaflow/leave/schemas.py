"""Leave request schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rotaflow.common.constants import LeaveType, RequestStatus
from rotaflow.core_hr.schemas import EmployeeBrief


class LeaveRequestCreate(BaseModel):
    """Employees file for themselves; managers may file on behalf of their team."""

    employee_id: Optional[uuid.UUID] = None
    leave_type: LeaveType
    start_date: date
    end_date: date
    days_requested: float = Field(gt=0)
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _range_is_ordered(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        return self


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days_requested: float
    reason: Optional[str] = None
    status: RequestStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    manager_notes: Optional[str] = None
    created_at: datetime
    employee: Optional[EmployeeBrief] = None
