"""Shift swap router — request and list. Decisions live under /admin and /manager."""


from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rotaflow.auth.context import AccessContext
from rotaflow.auth.dependencies import get_access_context
from rotaflow.common.constants import RequestStatus
from rotaflow.database import get_db
from rotaflow.swaps.schemas import SwapRequestCreate, SwapRequestOut
from rotaflow.swaps.service import SwapService

router = APIRouter(prefix="", tags=["shift-swaps"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def request_swap(
    body: SwapRequestCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    swap = await SwapService.request(db, ctx, body)
    return {
        "success": True,
        "data": SwapRequestOut.model_validate(swap),
        "message": "Shift swap request created successfully",
    }


@router.get("")
async def list_swaps(
    status: Optional[RequestStatus] = Query(None),
    swap_date: Optional[date] = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    swaps = await SwapService.list(db, ctx, status=status, swap_date=swap_date)
    return {"success": True, "data": [SwapRequestOut.model_validate(s) for s in swaps]}
