"""
Registration status endpoints.

Students register for a period; IOM staff record screening results, the
interview outcome and the approved amount.
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from api.dependencies import require_active_user, raise_for_result
from core.middleware.authorization import (
    AuthorizationError,
    Permission,
    has_permission,
    require_permission,
    require_roles,
)
from api.services import statuses as status_service
from database.models.users import User, UserRole

router = APIRouter(prefix="/status", tags=["status"])


class RegisterRequest(BaseModel):
    period_id: Optional[int] = Field(None, description="Defaults to the current period")


class ScreeningUpdate(BaseModel):
    student_id: int
    pass_ditmawa: Optional[bool] = None
    pass_iom: Optional[bool] = None


class ScreeningRequest(BaseModel):
    """Batch of screening results for one period."""
    period_id: int
    updates: List[ScreeningUpdate] = Field(..., min_length=1)


class ResultUpdateRequest(BaseModel):
    pass_interview: Optional[bool] = None
    amount: Optional[Decimal] = Field(None, ge=0, description="Approved aid amount")


@router.post("", status_code=201, summary="Register For Period")
async def register(
    data: RegisterRequest,
    current_user: User = Depends(require_roles(UserRole.MAHASISWA)),
):
    result = await status_service.register_for_period(current_user.id, data.period_id)
    raise_for_result(result)
    return result


@router.get("/check-registration", summary="Check Registration")
async def check_registration(
    period_id: Optional[int] = Query(None, description="Defaults to the current period"),
    current_user: User = Depends(require_roles(UserRole.MAHASISWA)),
):
    return await status_service.check_registration(current_user.id, period_id)


@router.get(
    "/scoring",
    summary="List Scoring Candidates",
    description="Students who passed IOM screening in a period.",
    dependencies=[Depends(require_permission(Permission.STATUS_READ))],
)
async def list_scoring_candidates(
    period_id: Optional[int] = Query(None, description="Defaults to the current period"),
):
    result = await status_service.list_scoring_candidates(period_id)
    raise_for_result(result)
    return result


@router.patch(
    "/screening",
    summary="Update Screening",
    dependencies=[Depends(require_permission(Permission.STATUS_UPDATE))],
)
async def update_screening(data: ScreeningRequest):
    """All updates are applied together or not at all."""
    result = await status_service.update_screening(
        data.period_id, [u.model_dump() for u in data.updates]
    )
    raise_for_result(result)
    return result


@router.get("/{student_id}/{period_id}", summary="Get Status")
async def get_status(
    student_id: int = Path(...),
    period_id: int = Path(...),
    current_user: User = Depends(require_active_user),
):
    if current_user.id != student_id and not has_permission(current_user, Permission.STATUS_READ):
        raise AuthorizationError("You can only view your own status")
    result = await status_service.get_status(student_id, period_id)
    raise_for_result(result)
    return result["status"]


@router.patch(
    "/{student_id}/{period_id}",
    summary="Update Result",
    dependencies=[Depends(require_permission(Permission.STATUS_UPDATE))],
)
async def update_result(
    data: ResultUpdateRequest,
    student_id: int = Path(...),
    period_id: int = Path(...),
):
    result = await status_service.update_result(
        student_id, period_id, pass_interview=data.pass_interview, amount=data.amount
    )
    raise_for_result(result)
    return result
