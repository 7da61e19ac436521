"""Academic period endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import periods as period_service

router = APIRouter(prefix="/periods", tags=["periods"])


class CreatePeriodRequest(BaseModel):
    """Request model for creating a period."""
    period: str = Field(..., min_length=1, max_length=100, description="Display name, e.g. 2025/2026")
    start_date: datetime
    end_date: datetime


@router.get(
    "",
    summary="List Periods",
    description="All periods, newest first.",
    dependencies=[Depends(require_permission(Permission.PERIOD_READ))],
)
async def list_periods():
    return await period_service.list_periods()


@router.get(
    "/current",
    summary="Get Current Period",
    dependencies=[Depends(require_permission(Permission.PERIOD_READ))],
)
async def get_current_period():
    result = await period_service.get_current_period()
    raise_for_result(result)
    return result["period"]


@router.post(
    "",
    status_code=201,
    summary="Create Period",
    dependencies=[Depends(require_permission(Permission.PERIOD_MANAGE))],
)
async def create_period(data: CreatePeriodRequest):
    """New periods start closed and not current."""
    result = await period_service.create_period(data.period, data.start_date, data.end_date)
    raise_for_result(result)
    return result


@router.post(
    "/{period_id}/set-current",
    summary="Set Current Period",
    dependencies=[Depends(require_permission(Permission.PERIOD_MANAGE))],
)
async def set_current_period(period_id: int = Path(..., description="Period ID")):
    result = await period_service.set_current_period(period_id)
    raise_for_result(result)
    return result


@router.post(
    "/{period_id}/toggle-open",
    summary="Toggle Registration",
    description="Open registration for a period (closing every other) or close it.",
    dependencies=[Depends(require_permission(Permission.PERIOD_MANAGE))],
)
async def toggle_period_open(period_id: int = Path(..., description="Period ID")):
    result = await period_service.toggle_period_open(period_id)
    raise_for_result(result)
    return result
