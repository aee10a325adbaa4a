"""Auth dependencies — JWT validation, access context, RBAC enforcement."""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.common.constants import UserRole
from rotaflow.common.exceptions import ForbiddenException, UnauthorizedException
from rotaflow.config import settings
from rotaflow.core_hr.models import Employee
from rotaflow.core_hr.service import EmployeeQueries
from rotaflow.database import get_db

logger = logging.getLogger(__name__)

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.admin: {UserRole.admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException("Missing or invalid Authorization header.")
    return auth_header[7:]


def _claim_uuid(payload: dict, key: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(payload[key]))
    except (KeyError, ValueError):
        raise UnauthorizedException(f"Token is missing a valid '{key}' claim.")


# ── Core dependency ─────────────────────────────────────────────────

async def get_access_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AccessContext:
    """Validate the JWT and resolve the caller's tenant, role and location scope."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type.")

    employee_id = _claim_uuid(payload, "sub")
    tenant_id = _claim_uuid(payload, "tenant_id")

    result = await db.execute(
        select(Employee).where(
            Employee.id == employee_id,
            Employee.tenant_id == tenant_id,
            Employee.is_active.is_(True),
        )
    )
    employee = result.scalars().first()
    if employee is None:
        raise UnauthorizedException("User account is inactive or not found.")

    location_ids: frozenset[uuid.UUID] = frozenset()
    if employee.role == UserRole.manager:
        location_ids = frozenset(
            await EmployeeQueries.manager_location_ids(db, tenant_id, employee.id)
        )

    ctx = AccessContext(
        user_id=employee.id,
        role=employee.role,
        tenant_id=tenant_id,
        organization_id=employee.organization_id,
        location_ids=location_ids,
    )
    request.state.access = ctx
    return ctx


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. admin can access manager endpoints.
    """

    async def _check(ctx: AccessContext = Depends(get_access_context)) -> AccessContext:
        effective_roles = _ROLE_HIERARCHY.get(ctx.role, {ctx.role})
        if not effective_roles.intersection(set(allowed_roles)):
            logger.info("Denied %s for role %s", [r.value for r in allowed_roles], ctx.role.value)
            raise ForbiddenException(
                detail=f"Role '{ctx.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return ctx

    return _check
