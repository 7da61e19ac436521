"""
User administration endpoints.

Admins approve registered Guests by assigning roles and remove accounts.
"""

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import users as user_service
from database.models.users import User, UserRole

router = APIRouter(prefix="/users", tags=["users"])


class AssignRoleRequest(BaseModel):
    """Request model for assigning a role."""
    role: UserRole = Field(UserRole.PENGURUS_IOM, description="Role to assign")


@router.get(
    "",
    summary="List Users",
    description="Students, interviewers and IOM staff. Requires user:manage permission.",
    dependencies=[Depends(require_permission(Permission.USER_MANAGE))],
)
async def list_users():
    return await user_service.list_users()


@router.get(
    "/awaiting",
    summary="List Awaiting Users",
    description="Accounts still waiting for a role.",
    dependencies=[Depends(require_permission(Permission.USER_MANAGE))],
)
async def list_awaiting_users():
    return await user_service.list_awaiting_users()


@router.get(
    "/iom-staff",
    summary="List IOM Staff",
    dependencies=[Depends(require_permission(Permission.STAFF_READ))],
)
async def list_iom_staff():
    """IOM staff members that can be attached to interviews."""
    return await user_service.list_iom_staff()


@router.get(
    "/{user_id}",
    summary="Get User",
    dependencies=[Depends(require_permission(Permission.USER_MANAGE))],
)
async def get_user(user_id: int = Path(..., description="User ID")):
    result = await user_service.get_user(user_id)
    raise_for_result(result)
    return result["user"]


@router.patch(
    "/{user_id}/role",
    summary="Assign Role",
    description="Assign a role to a user. The Admin role cannot be assigned.",
)
async def assign_role(
    data: AssignRoleRequest,
    user_id: int = Path(..., description="User ID"),
    current_user: User = Depends(require_permission(Permission.USER_MANAGE)),
):
    result = await user_service.assign_role(user_id, data.role, assigned_by=current_user.id)
    raise_for_result(result)
    return result


@router.delete(
    "/{user_id}",
    summary="Delete User",
)
async def delete_user(
    user_id: int = Path(..., description="User ID"),
    current_user: User = Depends(require_permission(Permission.USER_MANAGE)),
):
    """Delete an account. Admins cannot delete themselves."""
    result = await user_service.delete_user(user_id, deleted_by=current_user.id)
    raise_for_result(result)
    return result
