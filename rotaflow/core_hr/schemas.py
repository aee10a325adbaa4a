"""Core HR Pydantic schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from rotaflow.common.constants import PayPeriodType, UserRole


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in scheduling and approval responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    role: UserRole
    location_id: Optional[uuid.UUID] = None


class TenantSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    allow_manager_approvals: bool
    pay_period_type: PayPeriodType
    custom_period_days: Optional[int] = None
    week_start_day: int


class TenantSettingsUpdate(BaseModel):
    allow_manager_approvals: Optional[bool] = None
    pay_period_type: Optional[PayPeriodType] = None
    custom_period_days: Optional[int] = Field(default=None, ge=1, le=365)
    week_start_day: Optional[int] = None
