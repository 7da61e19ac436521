"""
User administration service functions.

Role assignment, the Guest approval queue and account removal.
"""

from typing import Any, Dict
import logging

from sqlalchemy import select, delete

from api.services.auth import user_to_dict
from database.engine import AsyncSessionLocal
from database.models.users import User, UserRole
from database.models.students import Student

logger = logging.getLogger(__name__)

MANAGED_ROLES = (UserRole.MAHASISWA, UserRole.PEWAWANCARA, UserRole.PENGURUS_IOM)


async def list_users() -> Dict[str, Any]:
    """Students, interviewers and IOM staff, ordered by name."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(User).where(User.role.in_(MANAGED_ROLES)).order_by(User.name)
        )
        users = result.scalars().all()
        return {
            "success": True,
            "users": [user_to_dict(u) for u in users],
            "total": len(users),
        }


async def list_awaiting_users() -> Dict[str, Any]:
    """Registered accounts that still wait for a role."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(User).where(User.role == UserRole.GUEST).order_by(User.created_at)
        )
        users = result.scalars().all()
        return {
            "success": True,
            "users": [user_to_dict(u) for u in users],
            "total": len(users),
        }


async def list_iom_staff() -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(User.id, User.name, User.email)
            .where(User.role == UserRole.PENGURUS_IOM)
            .order_by(User.name)
        )
        return {
            "success": True,
            "users": [
                {"id": row.id, "name": row.name, "email": row.email}
                for row in result.all()
            ],
        }


async def get_user(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            return {"success": False, "error": "User not found", "status_code": 404}
        student = await session.get(Student, user_id)
        return {"success": True, "user": user_to_dict(user, student)}


async def assign_role(
    user_id: int,
    role: UserRole = UserRole.PENGURUS_IOM,
    assigned_by: int | None = None,
) -> Dict[str, Any]:
    """
    Assign a role to a user.

    Args:
        user_id: Target user
        role: New role. Admin can only be granted through seeding.
        assigned_by: Acting admin, for the audit log

    Returns:
        Dictionary with the updated user
    """
    if role == UserRole.ADMIN:
        return {"success": False, "error": "Admin role cannot be assigned", "status_code": 400}

    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            return {"success": False, "error": "User not found", "status_code": 404}
        if user.role == UserRole.ADMIN:
            return {"success": False, "error": "Cannot change the role of an admin", "status_code": 400}

        previous = user.role
        user.role = role
        await session.commit()

        logger.info(
            f"User {user_id} role changed {previous.value} -> {role.value} by {assigned_by}"
        )
        return {"success": True, "user": user_to_dict(user)}


async def delete_user(user_id: int, deleted_by: int) -> Dict[str, Any]:
    """Delete an account. Sessions, profile and dependent rows cascade."""
    if user_id == deleted_by:
        return {"success": False, "error": "You cannot delete your own account", "status_code": 400}

    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            return {"success": False, "error": "User not found", "status_code": 404}

        await session.execute(delete(User).where(User.id == user_id))
        await session.commit()

        logger.info(f"User {user_id} deleted by {deleted_by}")
        return {"success": True, "deleted_id": user_id}
