"""
Interview session endpoints.

IOM staff create sessions whose time range is split into bookable slots.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from api.dependencies import require_active_user, raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import interviews as interview_service
from database.models.users import User

router = APIRouter(prefix="/interviews", tags=["interviews"])


class CreateInterviewRequest(BaseModel):
    """Request model for creating an interview session."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_students: int = Field(..., ge=1, le=200, description="Number of slots to generate")
    participant_ids: List[int] = Field(default_factory=list, description="Interviewers on every slot")


class UpdateInterviewRequest(BaseModel):
    """Partial update; slots are not regenerated."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    max_students: Optional[int] = None


class RegenerateInterviewRequest(BaseModel):
    """Full update; slots are rebuilt from the new range."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_students: int = Field(..., ge=1, le=200)


@router.post("", status_code=201, summary="Create Interview")
async def create_interview(
    data: CreateInterviewRequest,
    current_user: User = Depends(require_permission(Permission.INTERVIEW_CREATE)),
):
    result = await interview_service.create_interview(
        owner=current_user,
        title=data.title,
        description=data.description,
        start_time=data.start_time,
        end_time=data.end_time,
        max_students=data.max_students,
        participant_ids=data.participant_ids,
    )
    raise_for_result(result)
    return result


@router.get("", summary="List Interviews")
async def list_interviews(
    period_id: Optional[int] = Query(None, description="Staff only; defaults to the current period"),
    current_user: User = Depends(require_active_user),
):
    """
    Staff see full sessions; students see current-period sessions with
    slots reduced to ``is_booked``/``is_mine``.
    """
    result = await interview_service.list_interviews(current_user, period_id)
    raise_for_result(result)
    return result


@router.get(
    "/{interview_id}",
    summary="Get Interview",
    dependencies=[Depends(require_permission(Permission.STAFF_READ))],
)
async def get_interview(interview_id: int = Path(..., description="Interview ID")):
    result = await interview_service.get_interview(interview_id)
    raise_for_result(result)
    return result["interview"]


@router.patch("/{interview_id}", summary="Update Interview")
async def update_interview(
    data: UpdateInterviewRequest,
    interview_id: int = Path(..., description="Interview ID"),
    current_user: User = Depends(require_permission(Permission.INTERVIEW_CREATE)),
):
    result = await interview_service.update_interview(
        current_user, interview_id, data.model_dump(exclude_unset=True)
    )
    raise_for_result(result)
    return result


@router.put("/{interview_id}", summary="Replace Interview")
async def regenerate_interview(
    data: RegenerateInterviewRequest,
    interview_id: int = Path(..., description="Interview ID"),
    current_user: User = Depends(require_permission(Permission.INTERVIEW_CREATE)),
):
    """Rebuild slots from the new range. Existing bookings are dropped."""
    result = await interview_service.regenerate_interview(
        current_user,
        interview_id,
        title=data.title,
        description=data.description,
        start_time=data.start_time,
        end_time=data.end_time,
        max_students=data.max_students,
    )
    raise_for_result(result)
    return result


@router.delete("/{interview_id}", summary="Delete Interview")
async def delete_interview(
    interview_id: int = Path(..., description="Interview ID"),
    current_user: User = Depends(require_permission(Permission.INTERVIEW_CREATE)),
):
    result = await interview_service.delete_interview(current_user, interview_id)
    raise_for_result(result)
    return result
