"""
Interview slot endpoints.

Booking and cancellation by students, participation by interviewers, and
slot maintenance by their owners.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission, require_roles
from api.services import slots as slot_service
from database.models.users import User, UserRole

router = APIRouter(prefix="/slots", tags=["slots"])


class CreateSlotRequest(BaseModel):
    """Append a slot to an interview, or create a standalone slot."""
    interview_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime


class UpdateSlotRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class LeaveRequest(BaseModel):
    slot_id: Optional[int] = None
    interview_id: Optional[int] = None


@router.get("", summary="List Slots")
async def list_slots(
    period_id: Optional[int] = Query(None, description="Staff only; defaults to the current period"),
    current_user: User = Depends(require_permission(Permission.INTERVIEW_READ)),
):
    result = await slot_service.list_slots(current_user, period_id)
    raise_for_result(result)
    return result


@router.post("", status_code=201, summary="Create Slot")
async def create_slot(
    data: CreateSlotRequest,
    current_user: User = Depends(require_permission(Permission.SLOT_CREATE)),
):
    result = await slot_service.create_slot(
        current_user,
        start_time=data.start_time,
        end_time=data.end_time,
        interview_id=data.interview_id,
        title=data.title,
        description=data.description,
    )
    raise_for_result(result)
    return result


@router.post("/leave", summary="Leave Slots")
async def leave_slots(
    data: LeaveRequest,
    current_user: User = Depends(require_permission(Permission.SLOT_JOIN)),
):
    """Stop participating in a slot, an interview, or everything."""
    return await slot_service.leave_slots(current_user, data.slot_id, data.interview_id)


@router.get("/{slot_id}", summary="Get Slot")
async def get_slot(
    slot_id: int = Path(..., description="Slot ID"),
    current_user: User = Depends(require_permission(Permission.INTERVIEW_READ)),
):
    result = await slot_service.get_slot(current_user, slot_id)
    raise_for_result(result)
    return result["slot"]


@router.patch("/{slot_id}", summary="Update Slot")
async def update_slot(
    data: UpdateSlotRequest,
    slot_id: int = Path(..., description="Slot ID"),
    current_user: User = Depends(require_permission(Permission.SLOT_CREATE)),
):
    result = await slot_service.update_slot(
        current_user, slot_id, data.model_dump(exclude_unset=True)
    )
    raise_for_result(result)
    return result


@router.delete("/{slot_id}", summary="Delete Slot")
async def delete_slot(
    slot_id: int = Path(..., description="Slot ID"),
    current_user: User = Depends(require_permission(Permission.SLOT_CREATE)),
):
    """Delete a slot; the rest of its interview is renumbered."""
    result = await slot_service.delete_slot(current_user, slot_id)
    raise_for_result(result)
    return result


@router.post("/{slot_id}/book", summary="Book Slot")
async def book_slot(
    slot_id: int = Path(..., description="Slot ID"),
    current_user: User = Depends(require_roles(UserRole.MAHASISWA)),
):
    result = await slot_service.book_slot(current_user.id, slot_id)
    raise_for_result(result)
    return result


@router.post("/{slot_id}/cancel", summary="Cancel Booking")
async def cancel_booking(
    slot_id: int = Path(..., description="Slot ID"),
    current_user: User = Depends(require_permission(Permission.SLOT_CANCEL)),
):
    result = await slot_service.cancel_booking(current_user, slot_id)
    raise_for_result(result)
    return result


@router.post("/{slot_id}/join", summary="Join Slot")
async def join_slot(
    slot_id: int = Path(..., description="Slot ID"),
    current_user: User = Depends(require_permission(Permission.SLOT_JOIN)),
):
    result = await slot_service.join_slot(current_user, slot_id)
    raise_for_result(result)
    return result
