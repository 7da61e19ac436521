"""Student profile endpoints."""

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from api.dependencies import require_active_user, raise_for_result
from core.middleware.authorization import (
    AuthorizationError,
    Permission,
    has_permission,
    require_permission,
)
from api.services import students as student_service
from database.models.users import User

router = APIRouter(prefix="/students", tags=["students"])


class StudentProfileRequest(BaseModel):
    nim: str = Field(..., min_length=1, max_length=20, description="Student identification number")
    faculty: str = Field(..., min_length=1, max_length=255)
    major: str = Field(..., min_length=1, max_length=255)


@router.get(
    "",
    summary="List Students",
    dependencies=[Depends(require_permission(Permission.STUDENT_READ))],
)
async def list_students():
    return await student_service.list_students()


@router.get("/me", summary="Get Own Profile")
async def get_my_profile(
    current_user: User = Depends(require_permission(Permission.PROFILE_MANAGE)),
):
    result = await student_service.get_student(current_user.id)
    raise_for_result(result)
    return result["student"]


@router.put("/me", summary="Update Own Profile")
async def update_my_profile(
    data: StudentProfileRequest,
    current_user: User = Depends(require_permission(Permission.PROFILE_MANAGE)),
):
    """Create or update the caller's NIM, faculty and major."""
    result = await student_service.upsert_profile(
        current_user.id, data.nim, data.faculty, data.major
    )
    raise_for_result(result)
    return result


@router.get("/{student_id}", summary="Get Student")
async def get_student(
    student_id: int = Path(..., description="Student ID"),
    current_user: User = Depends(require_active_user),
):
    """Staff can view any student; students only themselves."""
    if current_user.id != student_id and not has_permission(current_user, Permission.STUDENT_READ):
        raise AuthorizationError("You can only view your own profile")
    result = await student_service.get_student(student_id)
    raise_for_result(result)
    return result["student"]
