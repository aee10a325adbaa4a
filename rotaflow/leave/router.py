"""Leave request router — submit and list. Approve/reject lives under /admin and /manager."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import get_access_context
from rotaflow.common.constants import LeaveType, RequestStatus
from rotaflow.database import get_db
from rotaflow.leave.schemas import LeaveRequestCreate, LeaveRequestOut
from rotaflow.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    body: LeaveRequestCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    leave_request = await LeaveService.submit(db, ctx, body)
    return {
        "success": True,
        "data": LeaveRequestOut.model_validate(leave_request),
        "message": "Leave request submitted successfully",
    }


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_leave_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[RequestStatus] = Query(None),
    type: Optional[LeaveType] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    requests = await LeaveService.list(
        db, ctx,
        employee_id=employee_id,
        status=status,
        leave_type=type,
        start_date=start_date,
        end_date=end_date,
    )
    return {"success": True, "data": [LeaveRequestOut.model_validate(r) for r in requests]}
