"""Common module — shared utilities for Rotaflow."""

from rotaflow.common.audit import AuditTrail, TimestampMixin, create_audit_entry
from rotaflow.common.constants import (
    DEFAULT_PAGE_SIZE,
    LEAVE_CANCELLATION_REASON,
    MAX_PAGE_SIZE,
    ApprovalEntity,
    ApprovalStatus,
    AssignmentStatus,
    Decision,
    LeaveType,
    NotificationType,
    RequestStatus,
    RotaStatus,
    TimeEntryStatus,
    UserRole,
)
from rotaflow.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from rotaflow.common.filters import apply_filters
from rotaflow.common.pagination import (
    PaginationMeta,
    PaginationParams,
    paginate,
)
from rotaflow.common.state import StateMachine

__all__ = [
    # Audit
    "AuditTrail",
    "TimestampMixin",
    "create_audit_entry",
    # Constants / Enums
    "ApprovalEntity",
    "ApprovalStatus",
    "AssignmentStatus",
    "Decision",
    "LeaveType",
    "NotificationType",
    "RequestStatus",
    "RotaStatus",
    "TimeEntryStatus",
    "UserRole",
    "DEFAULT_PAGE_SIZE",
    "LEAVE_CANCELLATION_REASON",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidStateException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    # Pagination
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    # State machines
    "StateMachine",
]
