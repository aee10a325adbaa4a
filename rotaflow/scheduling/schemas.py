"""Scheduling Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rotaflow.common.constants import AssignmentStatus, RotaStatus
from rotaflow.core_hr.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════


class ShiftTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    start_time: time
    end_time: time
    department: Optional[str] = Field(default=None, max_length=100)
    color: str = Field(default="#3B82F6", max_length=20)
    required_staff: int = Field(default=1, ge=1)


class ShiftTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    start_time: time
    end_time: time
    department: Optional[str] = None
    color: str
    required_staff: int
    is_active: bool


# ═════════════════════════════════════════════════════════════════════
# Rotas
# ═════════════════════════════════════════════════════════════════════


class RotaCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    week_start_date: date


class RotaStatusRequest(BaseModel):
    status: RotaStatus


class RotaOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    week_start_date: date
    status: RotaStatus
    published_at: Optional[datetime] = None
    total_shifts: int = 0


# ═════════════════════════════════════════════════════════════════════
# Assignments
# ═════════════════════════════════════════════════════════════════════


class ShiftShapeOut(BaseModel):
    kind: str
    template_id: Optional[uuid.UUID] = None
    name: str
    start_time: time
    end_time: time
    color: str


class AssignmentCreate(BaseModel):
    """Either ``template_id`` or all three override fields must be supplied."""

    employee_id: uuid.UUID
    date: date
    template_id: Optional[uuid.UUID] = None
    override_name: Optional[str] = Field(default=None, max_length=100)
    override_start_time: Optional[time] = None
    override_end_time: Optional[time] = None
    override_color: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = None
    rota_id: Optional[uuid.UUID] = None


class AssignmentUpdate(BaseModel):
    id: uuid.UUID
    template_id: Optional[uuid.UUID] = None
    date: Optional[dt.date] = None
    status: Optional[AssignmentStatus] = None
    notes: Optional[str] = None
    override_name: Optional[str] = Field(default=None, max_length=100)
    override_start_time: Optional[time] = None
    override_end_time: Optional[time] = None
    override_color: Optional[str] = Field(default=None, max_length=20)
    emergency_mode: bool = False

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, minus routing flags."""
        return self.model_dump(exclude_unset=True, exclude={"id", "emergency_mode"})


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    date: date
    template_id: Optional[uuid.UUID] = None
    override_name: Optional[str] = None
    override_start_time: Optional[time] = None
    override_end_time: Optional[time] = None
    override_color: Optional[str] = None
    status: AssignmentStatus
    rota_id: Optional[uuid.UUID] = None
    is_published: bool
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    shape: Optional[ShiftShapeOut] = None


class PublishRequest(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    shift_ids: Optional[list[uuid.UUID]] = None
    rota_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def _range_is_ordered(self) -> "PublishRequest":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class PublishResult(BaseModel):
    published_shifts: int
    affected_employees: int
    shifts: list[AssignmentOut]


# ═════════════════════════════════════════════════════════════════════
# Week view
# ═════════════════════════════════════════════════════════════════════


class WeekEmployee(BaseModel):
    employee: EmployeeBrief
    shifts: dict[str, list[AssignmentOut]]


class WeekView(BaseModel):
    week_start: date
    week_end: date
    employees: list[WeekEmployee]
    templates: list[ShiftTemplateOut]
    rotas: list[RotaOut]
    current_rota: Optional[RotaOut] = None
