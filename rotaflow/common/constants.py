"""Enums and constants for Rotaflow — stored as their string values."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    employee = "employee"


# ── Scheduling ──────────────────────────────────────────────────────

class RotaStatus(str, enum.Enum):
    draft = "draft"
    published = "published"


class AssignmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    assigned = "assigned"
    completed = "completed"
    cancelled = "cancelled"


# ── Time accounting ─────────────────────────────────────────────────

class TimeEntryStatus(str, enum.Enum):
    in_progress = "in-progress"
    on_break = "break"
    completed = "completed"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    edited = "edited"


class BreakStatus(str, enum.Enum):
    active = "active"
    completed = "completed"


# ── Requests (leave / swaps) ────────────────────────────────────────

class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class LeaveType(str, enum.Enum):
    vacation = "vacation"
    sick = "sick"
    personal = "personal"
    bereavement = "bereavement"
    jury_duty = "jury-duty"
    other = "other"


# ── Approvals ───────────────────────────────────────────────────────

class ApprovalEntity(str, enum.Enum):
    timesheet = "timesheet"
    leave_request = "leave_request"
    shift_swap = "shift_swap"


class Decision(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    edit = "edit"


class PayPeriodType(str, enum.Enum):
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    custom = "custom"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"
    urgent = "urgent"
    action_required = "action_required"
    shifts_published = "shifts_published"


# ── Misc constants ──────────────────────────────────────────────────

CURRENCY_SYMBOL = "£"
LEAVE_CANCELLATION_REASON = "Employee on approved leave"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
