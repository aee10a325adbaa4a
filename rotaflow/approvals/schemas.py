"""Approval request / response schemas."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from rotaflow.common.constants import Decision
from rotaflow.leave.schemas import LeaveRequestOut
from rotaflow.swaps.schemas import SwapRequestOut
from rotaflow.timekeeping.schemas import TimeEntryOut


class QueueKind(str, enum.Enum):
    all = "all"
    timesheets = "timesheets"
    leave_requests = "leave_requests"
    shift_swaps = "shift_swaps"


class TimesheetDecisionRequest(BaseModel):
    action: Decision
    approved_hours: Optional[float] = None
    approved_rate: Optional[float] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    break_hours: Optional[float] = None


class RequestDecision(BaseModel):
    """Leave and swap decisions: approve or reject only."""

    action: Decision
    manager_notes: Optional[str] = None
    rejection_reason: Optional[str] = None


class BulkApproveRequest(BaseModel):
    entry_ids: list[uuid.UUID]
    notes: Optional[str] = Field(default=None, max_length=1000)


class BulkApproveResult(BaseModel):
    approved_count: int
    total_requested: int


class ApprovalQueue(BaseModel):
    timesheets: list[TimeEntryOut] = []
    leave_requests: list[LeaveRequestOut] = []
    shift_swaps: list[SwapRequestOut] = []
