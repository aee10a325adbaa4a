"""Dashboard feed Pydantic v2 schemas — payloads of the ``stats`` and ``updates`` events."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from rotaflow.common.constants import AssignmentStatus, LeaveType, RequestStatus
from rotaflow.scheduling.schemas import ShiftShapeOut


# ═════════════════════════════════════════════════════════════════════
# event: stats
# ═════════════════════════════════════════════════════════════════════


class DashboardStats(BaseModel):
    """Headline counters for one tenant."""

    active_employees: int = Field(..., description="Active employee records")
    online_employees: int = Field(..., description="Employees currently clocked in")
    shifts_this_week: int = Field(..., description="Non-cancelled assignments Monday-Sunday")
    completed_shifts_this_week: int = 0
    pending_swap_requests: int = 0
    pending_leave_requests: int = 0
    active_time_entries: int = Field(..., description="Entries in progress or on break")


# ═════════════════════════════════════════════════════════════════════
# event: updates
# ═════════════════════════════════════════════════════════════════════


class EmployeeStatusItem(BaseModel):
    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    status: str = Field(..., description="online | break | offline")
    last_online: Optional[datetime] = None


class UpcomingShiftItem(BaseModel):
    id: uuid.UUID
    date: date
    status: AssignmentStatus
    employee_id: uuid.UUID
    employee_name: str
    shape: Optional[ShiftShapeOut] = None


class RecentSwapItem(BaseModel):
    id: uuid.UUID
    swap_date: date
    status: RequestStatus
    requester_name: str
    target_name: str
    reason: str
    created_at: datetime


class RecentLeaveItem(BaseModel):
    id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    status: RequestStatus
    employee_name: str
    created_at: datetime


class DashboardUpdates(BaseModel):
    employees: list[EmployeeStatusItem] = Field(default_factory=list)
    shifts: list[UpcomingShiftItem] = Field(default_factory=list)
    swap_requests: list[RecentSwapItem] = Field(default_factory=list)
    leave_requests: list[RecentLeaveItem] = Field(default_factory=list)
    timestamp: datetime
