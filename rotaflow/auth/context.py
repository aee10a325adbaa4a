"""The resolved caller identity every engine operation runs under."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

from rotaflow.common.constants import UserRole
from rotaflow.common.exceptions import ForbiddenException


@dataclass(frozen=True)
class AccessContext:
    """``(user, role, tenant, organization)`` plus the manager's location scope."""

    user_id: uuid.UUID
    role: UserRole
    tenant_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    location_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.manager

    def covers_location(self, location_id: Optional[uuid.UUID]) -> bool:
        """Admins cover every location; managers only their assigned ones."""
        if self.is_admin:
            return True
        if self.is_manager:
            return location_id is not None and location_id in self.location_ids
        return False

    def can_act_for(self, employee) -> bool:
        """Whether the caller may operate on *employee*'s schedule or time."""
        if employee.tenant_id != self.tenant_id:
            return False
        if employee.id == self.user_id:
            return True
        return self.covers_location(employee.location_id)

    def ensure_can_act_for(self, employee) -> None:
        if not self.can_act_for(employee):
            raise ForbiddenException(
                "This employee is outside your permitted locations."
            )
