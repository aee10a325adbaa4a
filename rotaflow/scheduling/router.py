"""Scheduling router — assignments, publishing, week view, templates, rotas.

Writes require manager or admin; the week view is open to every role but
plain employees only see their own published shifts.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import get_access_context, require_role
from rotaflow.common.constants import UserRole
from rotaflow.database import get_db
from rotaflow.scheduling.schemas import (
    AssignmentCreate,
    AssignmentUpdate,
    PublishRequest,
    RotaCreate,
    RotaOut,
    RotaStatusRequest,
    ShiftTemplateCreate,
    ShiftTemplateOut,
)
from rotaflow.scheduling.service import SchedulingService, assignment_out

router = APIRouter(prefix="", tags=["scheduling"])

_manager = require_role(UserRole.manager)


# ── POST /assign ────────────────────────────────────────────────────

@router.post("/assign", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    body: AssignmentCreate,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    """Assign an employee to a shift. New assignments start as drafts."""
    assignment = await SchedulingService.assign(db, ctx, body)
    return {
        "success": True,
        "data": assignment_out(assignment),
        "message": "Shift assigned successfully",
    }


# ── PUT /assign ─────────────────────────────────────────────────────

@router.put("/assign")
async def update_assignment(
    body: AssignmentUpdate,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    """Partially update an assignment. Published shifts notify the employee."""
    assignment, notified = await SchedulingService.update(db, ctx, body)
    if notified and body.emergency_mode:
        message = "Shift updated and employee notified urgently"
    elif notified:
        message = "Shift updated and employee notified"
    else:
        message = "Shift updated successfully"
    return {
        "success": True,
        "data": assignment_out(assignment),
        "message": message,
        "notification_sent": notified,
    }


# ── DELETE /assign ──────────────────────────────────────────────────

@router.delete("/assign")
async def delete_assignment(
    id: uuid.UUID = Query(..., description="Assignment to remove"),
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    await SchedulingService.delete(db, ctx, id)
    return {"success": True, "message": "Shift assignment deleted successfully"}


# ── POST /publish ───────────────────────────────────────────────────

@router.post("/publish")
async def publish_shifts(
    body: PublishRequest,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    """Publish draft shifts by id list, rota, or date range."""
    result = await SchedulingService.publish(db, ctx, body)
    return {
        "success": True,
        "data": result,
        "message": (
            f"Successfully published {result.published_shifts} shifts "
            f"for {result.affected_employees} employees"
        ),
    }


# ── GET /week/{anchor} ──────────────────────────────────────────────

@router.get("/week/{anchor}")
async def week_view(
    anchor: date,
    employee_id: Optional[uuid.UUID] = Query(None),
    rota_id: Optional[uuid.UUID] = Query(None),
    published_only: bool = Query(False),
    show_drafts_only: bool = Query(False),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Monday-aligned week grid for the week containing *anchor*."""
    view = await SchedulingService.week_view(
        db, ctx, anchor,
        employee_id=employee_id,
        rota_id=rota_id,
        published_only=published_only,
        show_drafts_only=show_drafts_only,
    )
    return {"success": True, "data": view}


# ── Templates ───────────────────────────────────────────────────────

@router.get("/templates")
async def list_templates(
    include_inactive: bool = Query(False),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    templates = await SchedulingService.list_templates(db, ctx, include_inactive=include_inactive)
    return {"success": True, "data": [ShiftTemplateOut.model_validate(t) for t in templates]}


@router.post("/templates", status_code=status.HTTP_201_CREATED)
async def create_template(
    body: ShiftTemplateCreate,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    template = await SchedulingService.create_template(db, ctx, body)
    return {"success": True, "data": ShiftTemplateOut.model_validate(template)}


@router.delete("/templates/{template_id}")
async def deactivate_template(
    template_id: uuid.UUID,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    template = await SchedulingService.deactivate_template(db, ctx, template_id)
    return {
        "success": True,
        "data": ShiftTemplateOut.model_validate(template),
        "message": "Shift template deactivated",
    }


# ── Rotas ───────────────────────────────────────────────────────────

@router.post("/rotas", status_code=status.HTTP_201_CREATED)
async def create_rota(
    body: RotaCreate,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    rota = await SchedulingService.create_rota(db, ctx, body)
    return {"success": True, "data": RotaOut.model_validate(rota)}


@router.patch("/rotas/{rota_id}")
async def set_rota_status(
    rota_id: uuid.UUID,
    body: RotaStatusRequest,
    ctx: AccessContext = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    rota = await SchedulingService.set_rota_status(db, ctx, rota_id, body.status)
    return {"success": True, "data": RotaOut.model_validate(rota)}
