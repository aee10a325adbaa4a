"""Core HR router — tenant approval settings.

Routes:
    /settings/approvals  — Get, update manager-approval and pay-period settings
"""


from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import require_role
from rotaflow.common.constants import UserRole
from rotaflow.core_hr.schemas import TenantSettingsOut, TenantSettingsUpdate
from rotaflow.core_hr.service import TenantSettingsService
from rotaflow.database import get_db

settings_router = APIRouter(prefix="", tags=["settings"])

_admin = require_role(UserRole.admin)


# ── GET /settings/approvals ─────────────────────────────────────────

@settings_router.get("/settings/approvals")
async def get_approval_settings(
    ctx: AccessContext = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    current = await TenantSettingsService.get(db, ctx.tenant_id)
    return {"success": True, "data": TenantSettingsOut.model_validate(current)}


# ── PUT /settings/approvals ─────────────────────────────────────────

@settings_router.put("/settings/approvals")
async def update_approval_settings(
    body: TenantSettingsUpdate,
    ctx: AccessContext = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    current = await TenantSettingsService.update(
        db,
        ctx.tenant_id,
        allow_manager_approvals=body.allow_manager_approvals,
        pay_period_type=body.pay_period_type,
        custom_period_days=body.custom_period_days,
        week_start_day=body.week_start_day,
    )
    return {
        "success": True,
        "data": TenantSettingsOut.model_validate(current),
        "message": "Approval settings updated",
    }
