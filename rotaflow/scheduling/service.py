"""Scheduling business logic — templates, rotas, assignments, publishing, week view.

Every operation runs under an :class:`AccessContext`. Managers only ever
see or touch employees at their assigned locations; admins see the whole
tenant.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rotaflow.auth.context import AccessContext
from rotaflow.common.audit import create_audit_entry
from rotaflow.common.constants import AssignmentStatus, RotaStatus, UserRole
from rotaflow.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from rotaflow.common.state import (
    ASSIGNMENT,
    ROTA,
    AssignmentAction,
    ensure_assignment_action,
)
from rotaflow.common.time_utils import utcnow, week_bounds
from rotaflow.core_hr.models import Employee
from rotaflow.core_hr.schemas import EmployeeBrief
from rotaflow.core_hr.service import EmployeeQueries
from rotaflow.notifications.service import (
    notify_shift_removed,
    notify_shift_updated,
    notify_shifts_published,
)
from rotaflow.scheduling.models import Rota, ShiftAssignment, ShiftTemplate
from rotaflow.scheduling.schemas import (
    AssignmentCreate,
    AssignmentOut,
    AssignmentUpdate,
    PublishRequest,
    PublishResult,
    RotaCreate,
    RotaOut,
    ShiftShapeOut,
    ShiftTemplateCreate,
    ShiftTemplateOut,
    WeekEmployee,
    WeekView,
)
from rotaflow.scheduling.shapes import ShiftShape, resolve_shape

logger = logging.getLogger(__name__)

_SHAPE_FIELDS = ("override_name", "override_start_time", "override_end_time")


def shape_out(shape: Optional[ShiftShape]) -> Optional[ShiftShapeOut]:
    if shape is None:
        return None
    return ShiftShapeOut(
        kind=shape.kind,
        template_id=getattr(shape, "template_id", None),
        name=shape.name,
        start_time=shape.start_time,
        end_time=shape.end_time,
        color=shape.color,
    )


def assignment_out(assignment: ShiftAssignment) -> AssignmentOut:
    """Serialise *assignment* with its resolved shape (template must be loaded)."""
    out = AssignmentOut.model_validate(assignment)
    out.shape = shape_out(resolve_shape(assignment, assignment.template))
    return out


def _snapshot(assignment: ShiftAssignment) -> dict[str, Any]:
    return {
        "employee_id": assignment.employee_id,
        "date": assignment.date,
        "template_id": assignment.template_id,
        "override_name": assignment.override_name,
        "override_start_time": assignment.override_start_time,
        "override_end_time": assignment.override_end_time,
        "override_color": assignment.override_color,
        "status": assignment.status,
        "notes": assignment.notes,
        "is_published": assignment.is_published,
    }


def _shape_name(assignment: ShiftAssignment) -> str:
    shape = resolve_shape(assignment, assignment.template)
    return shape.name if shape is not None else "scheduled"


class SchedulingService:
    """Async scheduling operations."""

    # ── Internal lookups ────────────────────────────────────────────

    @staticmethod
    async def _get_active_template(
        db: AsyncSession, tenant_id: uuid.UUID, template_id: uuid.UUID,
    ) -> ShiftTemplate:
        result = await db.execute(
            select(ShiftTemplate).where(
                ShiftTemplate.id == template_id,
                ShiftTemplate.tenant_id == tenant_id,
                ShiftTemplate.is_active.is_(True),
            )
        )
        template = result.scalars().first()
        if template is None:
            raise NotFoundException("Shift template", template_id)
        return template

    @staticmethod
    async def _get_rota(db: AsyncSession, tenant_id: uuid.UUID, rota_id: uuid.UUID) -> Rota:
        result = await db.execute(
            select(Rota).where(Rota.id == rota_id, Rota.tenant_id == tenant_id)
        )
        rota = result.scalars().first()
        if rota is None:
            raise NotFoundException("Rota", rota_id)
        return rota

    @staticmethod
    async def get_assignment(
        db: AsyncSession, ctx: AccessContext, assignment_id: uuid.UUID,
    ) -> ShiftAssignment:
        """Load an assignment with its template, rota and employee; scope-checked."""
        result = await db.execute(
            select(ShiftAssignment)
            .options(
                selectinload(ShiftAssignment.template),
                selectinload(ShiftAssignment.rota),
                selectinload(ShiftAssignment.employee),
            )
            .where(
                ShiftAssignment.id == assignment_id,
                ShiftAssignment.tenant_id == ctx.tenant_id,
            )
        )
        assignment = result.scalars().first()
        if assignment is None:
            raise NotFoundException("Shift assignment", assignment_id)
        ctx.ensure_can_act_for(assignment.employee)
        return assignment

    @staticmethod
    async def _ensure_free_day(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
        on: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(ShiftAssignment.id).where(
            ShiftAssignment.tenant_id == tenant_id,
            ShiftAssignment.employee_id == employee_id,
            ShiftAssignment.date == on,
            ShiftAssignment.status != AssignmentStatus.cancelled,
        )
        if exclude_id is not None:
            query = query.where(ShiftAssignment.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError(
                "date", on.isoformat(),
                detail="Employee already has a shift assigned for this date",
            )

    @staticmethod
    async def _flush_assignment(db: AsyncSession, assignment: ShiftAssignment) -> None:
        # The partial unique index backs up the read-then-write check under races.
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "date", assignment.date.isoformat(),
                detail="Employee already has a shift assigned for this date",
            ) from exc

    # ═════════════════════════════════════════════════════════════════
    # Templates
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def create_template(
        db: AsyncSession, ctx: AccessContext, data: ShiftTemplateCreate,
    ) -> ShiftTemplate:
        template = ShiftTemplate(
            tenant_id=ctx.tenant_id,
            created_by=ctx.user_id,
            **data.model_dump(),
        )
        db.add(template)
        await db.flush()
        logger.info("Shift template %s created in tenant %s", template.id, ctx.tenant_id)
        return template

    @staticmethod
    async def list_templates(
        db: AsyncSession, ctx: AccessContext, *, include_inactive: bool = False,
    ) -> list[ShiftTemplate]:
        query = (
            select(ShiftTemplate)
            .where(ShiftTemplate.tenant_id == ctx.tenant_id)
            .order_by(ShiftTemplate.start_time, ShiftTemplate.name)
        )
        if not include_inactive:
            query = query.where(ShiftTemplate.is_active.is_(True))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def deactivate_template(
        db: AsyncSession, ctx: AccessContext, template_id: uuid.UUID,
    ) -> ShiftTemplate:
        """Soft-delete: existing assignments keep rendering from the template."""
        template = await SchedulingService._get_active_template(db, ctx.tenant_id, template_id)
        template.is_active = False
        await db.flush()
        return template

    # ═════════════════════════════════════════════════════════════════
    # Rotas
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def create_rota(db: AsyncSession, ctx: AccessContext, data: RotaCreate) -> Rota:
        week_start, _ = week_bounds(data.week_start_date)
        rota = Rota(
            tenant_id=ctx.tenant_id,
            name=data.name,
            week_start_date=week_start,
            status=RotaStatus.draft,
            created_by=ctx.user_id,
        )
        db.add(rota)
        await db.flush()
        return rota

    @staticmethod
    async def set_rota_status(
        db: AsyncSession,
        ctx: AccessContext,
        rota_id: uuid.UUID,
        status: RotaStatus,
        *,
        now: Optional[datetime] = None,
    ) -> Rota:
        rota = await SchedulingService._get_rota(db, ctx.tenant_id, rota_id)
        ROTA.ensure(rota.status, status)
        rota.status = status
        rota.published_at = (now or utcnow()) if status == RotaStatus.published else None
        await db.flush()
        logger.info("Rota %s moved to %s by %s", rota.id, status.value, ctx.user_id)
        return rota

    # ═════════════════════════════════════════════════════════════════
    # Assignments
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def assign(
        db: AsyncSession, ctx: AccessContext, data: AssignmentCreate,
    ) -> ShiftAssignment:
        """Create a draft assignment for one employee on one day."""
        employee = await EmployeeQueries.get(db, ctx.tenant_id, data.employee_id)
        if not ctx.covers_location(employee.location_id):
            raise ForbiddenException("This employee is outside your permitted locations.")

        has_override = all(getattr(data, f) is not None for f in _SHAPE_FIELDS)
        if data.template_id is None and not has_override:
            raise ValidationException({
                "template_id": [
                    "Provide template_id, or override_name, override_start_time "
                    "and override_end_time."
                ],
            })

        template = None
        if data.template_id is not None:
            template = await SchedulingService._get_active_template(
                db, ctx.tenant_id, data.template_id,
            )
        rota = None
        if data.rota_id is not None:
            rota = await SchedulingService._get_rota(db, ctx.tenant_id, data.rota_id)

        await SchedulingService._ensure_free_day(
            db, ctx.tenant_id, employee.id, data.date,
        )

        assignment = ShiftAssignment(
            tenant_id=ctx.tenant_id,
            employee_id=employee.id,
            date=data.date,
            template_id=data.template_id,
            override_name=data.override_name if has_override else None,
            override_start_time=data.override_start_time if has_override else None,
            override_end_time=data.override_end_time if has_override else None,
            override_color=data.override_color if has_override else None,
            notes=data.notes,
            rota_id=data.rota_id,
            status=AssignmentStatus.assigned,
            is_published=False,
            assigned_by=ctx.user_id,
            template=template,
            rota=rota,
        )
        db.add(assignment)
        await SchedulingService._flush_assignment(db, assignment)
        logger.info(
            "Assigned employee %s on %s (assignment %s)",
            employee.id, data.date, assignment.id,
        )
        return assignment

    @staticmethod
    async def update(
        db: AsyncSession, ctx: AccessContext, data: AssignmentUpdate,
    ) -> tuple[ShiftAssignment, bool]:
        """Apply a partial update; returns ``(assignment, notification_sent)``."""
        changes = data.changes()
        if not changes:
            raise ValidationException({"fields": ["No fields to update"]})

        assignment = await SchedulingService.get_assignment(db, ctx, data.id)
        rota_status = assignment.rota.status if assignment.rota else None
        ensure_assignment_action(rota_status, AssignmentAction.update)
        before = _snapshot(assignment)

        if "template_id" in changes:
            template_id = changes.pop("template_id")
            if template_id is None:
                assignment.template = None
            else:
                assignment.template = await SchedulingService._get_active_template(
                    db, ctx.tenant_id, template_id,
                )
            assignment.template_id = template_id

        if "status" in changes:
            target = changes.pop("status")
            if target is None:
                raise ValidationException({"status": ["status cannot be null"]})
            if target != assignment.status:
                ASSIGNMENT.ensure(assignment.status, target)
                assignment.status = target

        if "date" in changes:
            new_date = changes.pop("date")
            if new_date is None:
                raise ValidationException({"date": ["date cannot be null"]})
            if new_date != assignment.date and assignment.status != AssignmentStatus.cancelled:
                await SchedulingService._ensure_free_day(
                    db, ctx.tenant_id, assignment.employee_id, new_date,
                    exclude_id=assignment.id,
                )
            assignment.date = new_date

        for field, value in changes.items():
            setattr(assignment, field, value)

        if assignment.template_id is None and not assignment.has_override:
            raise ValidationException({
                "template_id": ["An assignment needs a template or a complete override."],
            })

        await SchedulingService._flush_assignment(db, assignment)
        await create_audit_entry(
            db,
            tenant_id=ctx.tenant_id,
            action="update",
            entity_type="shift_assignment",
            entity_id=assignment.id,
            actor_id=ctx.user_id,
            old_values=before,
            new_values=_snapshot(assignment),
        )

        notification_sent = assignment.is_published or rota_status == RotaStatus.published
        if notification_sent:
            notify_shift_updated(
                db, assignment,
                shift_name=_shape_name(assignment),
                emergency=data.emergency_mode,
            )
        return assignment, notification_sent

    @staticmethod
    async def delete(db: AsyncSession, ctx: AccessContext, assignment_id: uuid.UUID) -> None:
        assignment = await SchedulingService.get_assignment(db, ctx, assignment_id)
        ensure_assignment_action(
            assignment.rota.status if assignment.rota else None,
            AssignmentAction.delete,
        )

        if assignment.is_published:
            notify_shift_removed(db, assignment, shift_name=_shape_name(assignment))

        await create_audit_entry(
            db,
            tenant_id=ctx.tenant_id,
            action="delete",
            entity_type="shift_assignment",
            entity_id=assignment.id,
            actor_id=ctx.user_id,
            old_values=_snapshot(assignment),
        )
        await db.delete(assignment)
        await db.flush()
        logger.info("Assignment %s deleted by %s", assignment_id, ctx.user_id)

    @staticmethod
    async def publish(
        db: AsyncSession, ctx: AccessContext, data: PublishRequest,
    ) -> PublishResult:
        """Flip matching draft assignments to published in one transaction.

        Selection precedence: explicit ``shift_ids``, then ``rota_id``, then the
        date range. Each affected employee gets exactly one notification.
        """
        query = (
            select(ShiftAssignment)
            .join(Employee, Employee.id == ShiftAssignment.employee_id)
            .options(selectinload(ShiftAssignment.template))
            .where(
                ShiftAssignment.tenant_id == ctx.tenant_id,
                ShiftAssignment.is_published.is_(False),
                ShiftAssignment.status != AssignmentStatus.cancelled,
            )
            .order_by(ShiftAssignment.date, ShiftAssignment.employee_id)
        )
        if data.shift_ids:
            query = query.where(ShiftAssignment.id.in_(data.shift_ids))
        elif data.rota_id is not None:
            query = query.where(ShiftAssignment.rota_id == data.rota_id)
        else:
            if data.start_date is not None:
                query = query.where(ShiftAssignment.date >= data.start_date)
            if data.end_date is not None:
                query = query.where(ShiftAssignment.date <= data.end_date)
        if not ctx.is_admin:
            query = query.where(Employee.location_id.in_(list(ctx.location_ids)))

        rows = list((await db.execute(query)).scalars().all())
        if not rows:
            raise InvalidStateException("No draft shifts found to publish")

        employee_ids: list[uuid.UUID] = []
        for assignment in rows:
            assignment.is_published = True
            if assignment.employee_id not in employee_ids:
                employee_ids.append(assignment.employee_id)
        await db.flush()

        for employee_id in employee_ids:
            notify_shifts_published(db, ctx.tenant_id, employee_id)

        logger.info(
            "Published %d shifts for %d employees in tenant %s",
            len(rows), len(employee_ids), ctx.tenant_id,
        )
        return PublishResult(
            published_shifts=len(rows),
            affected_employees=len(employee_ids),
            shifts=[assignment_out(a) for a in rows],
        )

    # ═════════════════════════════════════════════════════════════════
    # Week view
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def week_view(
        db: AsyncSession,
        ctx: AccessContext,
        anchor: date,
        *,
        employee_id: Optional[uuid.UUID] = None,
        rota_id: Optional[uuid.UUID] = None,
        published_only: bool = False,
        show_drafts_only: bool = False,
    ) -> WeekView:
        """Monday-aligned week grid: employees × days, plus templates and rotas.

        Plain employees only ever see their own published shifts.
        """
        week_start, week_end = week_bounds(anchor)
        days = [date.fromordinal(week_start.toordinal() + i) for i in range(7)]

        if ctx.role == UserRole.employee:
            employee_id = ctx.user_id
            published_only, show_drafts_only = True, False

        emp_query = (
            select(Employee)
            .where(
                Employee.tenant_id == ctx.tenant_id,
                Employee.is_active.is_(True),
            )
            .order_by(Employee.first_name, Employee.last_name)
        )
        if employee_id is not None:
            emp_query = emp_query.where(Employee.id == employee_id)
        else:
            emp_query = emp_query.where(Employee.role == UserRole.employee)
        if ctx.is_manager:
            emp_query = emp_query.where(Employee.location_id.in_(list(ctx.location_ids)))
        employees = list((await db.execute(emp_query)).scalars().all())

        grid: dict[uuid.UUID, dict[str, list[AssignmentOut]]] = {
            e.id: {d.isoformat(): [] for d in days} for e in employees
        }
        if employees:
            shift_query = (
                select(ShiftAssignment)
                .options(selectinload(ShiftAssignment.template))
                .where(
                    ShiftAssignment.tenant_id == ctx.tenant_id,
                    ShiftAssignment.date >= week_start,
                    ShiftAssignment.date <= week_end,
                    ShiftAssignment.status != AssignmentStatus.cancelled,
                    ShiftAssignment.employee_id.in_(list(grid)),
                )
                .order_by(ShiftAssignment.date)
            )
            if rota_id is not None:
                shift_query = shift_query.where(ShiftAssignment.rota_id == rota_id)
            if published_only:
                shift_query = shift_query.where(ShiftAssignment.is_published.is_(True))
            elif show_drafts_only:
                shift_query = shift_query.where(ShiftAssignment.is_published.is_(False))
            for assignment in (await db.execute(shift_query)).scalars().all():
                grid[assignment.employee_id][assignment.date.isoformat()].append(
                    assignment_out(assignment)
                )

        templates = await SchedulingService.list_templates(db, ctx)

        shift_count = func.count(ShiftAssignment.id)
        rota_rows = (
            await db.execute(
                select(Rota, shift_count)
                .outerjoin(
                    ShiftAssignment,
                    and_(
                        ShiftAssignment.rota_id == Rota.id,
                        ShiftAssignment.status != AssignmentStatus.cancelled,
                    ),
                )
                .where(Rota.tenant_id == ctx.tenant_id, Rota.week_start_date == week_start)
                .group_by(Rota.id)
                .order_by(Rota.created_at)
            )
        ).all()
        rotas = [
            RotaOut.model_validate(rota).model_copy(update={"total_shifts": total})
            for rota, total in rota_rows
        ]

        current_rota = None
        if rota_id is not None:
            current_rota = next((r for r in rotas if r.id == rota_id), None)
            if current_rota is None:
                current_rota = RotaOut.model_validate(
                    await SchedulingService._get_rota(db, ctx.tenant_id, rota_id)
                )
        elif rotas:
            current_rota = rotas[0]

        return WeekView(
            week_start=week_start,
            week_end=week_end,
            employees=[
                WeekEmployee(employee=EmployeeBrief.model_validate(e), shifts=grid[e.id])
                for e in employees
            ],
            templates=[ShiftTemplateOut.model_validate(t) for t in templates],
            rotas=rotas,
            current_rota=current_rota,
        )
