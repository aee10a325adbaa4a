"""Time accounting Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rotaflow.common.constants import ApprovalStatus, BreakStatus, TimeEntryStatus
from rotaflow.core_hr.schemas import EmployeeBrief
from rotaflow.scheduling.schemas import ShiftShapeOut
from rotaflow.timekeeping.discrepancy import DiscrepancyType, Severity


# ── Requests ────────────────────────────────────────────────────────


class ClockRequest(BaseModel):
    """Managers may clock a team member in or out; employees omit the id."""

    employee_id: Optional[uuid.UUID] = None


class ClockOutRequest(ClockRequest):
    total_calls_taken: int = Field(default=0, ge=0)
    leads_generated: int = Field(default=0, ge=0)
    shift_remarks: Optional[str] = None
    performance_rating: Optional[int] = Field(default=None, ge=1, le=5)


class TimeEntryEditRequest(BaseModel):
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    break_hours: Optional[float] = None
    admin_notes: Optional[str] = None

    @model_validator(mode="after")
    def _has_changes(self) -> "TimeEntryEditRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class BreakHoursRequest(BaseModel):
    break_hours: float


# ── Responses ───────────────────────────────────────────────────────


class TimeEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    shift_assignment_id: Optional[uuid.UUID] = None
    date: date
    clock_in: datetime
    clock_out: Optional[datetime] = None
    break_hours: float
    max_break_hours: float
    total_hours: float
    status: TimeEntryStatus
    approval_status: ApprovalStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    approved_hours: Optional[float] = None
    approved_rate: Optional[float] = None
    total_pay: Optional[float] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    total_calls_taken: int
    leads_generated: int
    shift_remarks: Optional[str] = None
    performance_rating: Optional[int] = None


class BreakLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    time_entry_id: uuid.UUID
    break_start: datetime
    break_end: Optional[datetime] = None
    break_hours: float
    status: BreakStatus


class BreakStatusOut(BaseModel):
    on_break: bool
    current_break: Optional[BreakLogOut] = None
    elapsed_minutes: Optional[int] = None
    break_hours_used: float = 0.0
    max_break_hours: Optional[float] = None


class ClockOutResult(BaseModel):
    entry: TimeEntryOut
    total_shift_duration: float
    break_hours: float
    total_hours: float


class DiscrepancyOut(BaseModel):
    type: DiscrepancyType
    severity: Severity
    message: str
    minutes: Optional[int] = None


class TimesheetRow(BaseModel):
    entry: TimeEntryOut
    employee: EmployeeBrief
    scheduled_shift: Optional[ShiftShapeOut] = None
    discrepancies: list[DiscrepancyOut]
