"""
Role-based authorization.

Every role maps to a fixed set of permissions. Routes declare what they need
with ``require_permission`` (permission based) or ``require_roles`` (role
based, used where an action is reserved to one kind of user regardless of
privilege, e.g. only students book slots). Ownership checks on individual
resources stay in the service layer.
"""

import logging
from typing import Callable, Set
from enum import Enum
from fastapi import Request

from database.models.users import User, UserRole

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """System-wide permissions."""

    # Accounts
    USER_MANAGE = "user:manage"
    STAFF_READ = "staff:read"

    # Periods
    PERIOD_READ = "period:read"
    PERIOD_MANAGE = "period:manage"

    # Students & registration
    PROFILE_MANAGE = "profile:manage"
    STUDENT_READ = "student:read"
    STATUS_REGISTER = "status:register"
    STATUS_READ = "status:read"
    STATUS_UPDATE = "status:update"

    # Documents
    FILE_UPLOAD = "file:upload"
    FILE_READ = "file:read"
    FILE_READ_ALL = "file:read_all"
    FILE_DELETE = "file:delete"

    # Interviews
    INTERVIEW_READ = "interview:read"
    INTERVIEW_CREATE = "interview:create"
    SLOT_CREATE = "slot:create"
    SLOT_BOOK = "slot:book"
    SLOT_CANCEL = "slot:cancel"
    SLOT_JOIN = "slot:join"
    NOTES_READ = "notes:read"
    NOTES_WRITE = "notes:write"

    # Scoring
    QUESTION_READ = "question:read"
    QUESTION_MANAGE = "question:manage"
    SCORE_READ = "score:read"
    SCORE_WRITE = "score:write"

    # Reporting
    REPORT_READ = "report:read"
    STATISTICS_READ = "statistics:read"

    # Notifications
    NOTIFICATION_READ = "notification:read"
    NOTIFICATION_SEND = "notification:send"


_BASE = {Permission.PERIOD_READ, Permission.NOTIFICATION_READ}

_INTERVIEWER = _BASE | {
    Permission.STAFF_READ,
    Permission.STUDENT_READ,
    Permission.STATUS_READ,
    Permission.FILE_READ,
    Permission.INTERVIEW_READ,
    Permission.SLOT_CREATE,
    Permission.SLOT_JOIN,
    Permission.NOTES_READ,
    Permission.NOTES_WRITE,
    Permission.QUESTION_READ,
    Permission.SCORE_READ,
    Permission.SCORE_WRITE,
}

_IOM = _INTERVIEWER | {
    Permission.STATUS_UPDATE,
    Permission.FILE_READ_ALL,
    Permission.FILE_DELETE,
    Permission.INTERVIEW_CREATE,
    Permission.SLOT_CANCEL,
    Permission.QUESTION_MANAGE,
    Permission.REPORT_READ,
    Permission.STATISTICS_READ,
    Permission.NOTIFICATION_SEND,
}

ROLE_PERMISSIONS: dict[UserRole, Set[Permission]] = {
    UserRole.ADMIN: _IOM | {Permission.USER_MANAGE, Permission.PERIOD_MANAGE},
    UserRole.PENGURUS_IOM: _IOM,
    UserRole.PEWAWANCARA: _INTERVIEWER,
    UserRole.MAHASISWA: _BASE | {
        Permission.PROFILE_MANAGE,
        Permission.STATUS_REGISTER,
        Permission.FILE_UPLOAD,
        Permission.INTERVIEW_READ,
        Permission.SLOT_BOOK,
        Permission.SLOT_CANCEL,
    },
    UserRole.GUEST: set(_BASE),
}

STAFF_ROLES = (UserRole.ADMIN, UserRole.PENGURUS_IOM, UserRole.PEWAWANCARA)
IOM_ROLES = (UserRole.ADMIN, UserRole.PENGURUS_IOM)


class AuthorizationError(Exception):
    """Base exception for authorization errors."""

    def __init__(self, message: str = "You don't have permission to perform this action"):
        super().__init__(message)
        self.message = message


class InsufficientPermissions(AuthorizationError):
    """Raised when user lacks required permissions."""
    pass


def get_user_permissions(user: User) -> Set[Permission]:
    """Permissions granted to a user through their role."""
    return ROLE_PERMISSIONS.get(UserRole(user.role), set())


def has_permission(user: User, permission: Permission) -> bool:
    return permission in get_user_permissions(user)


def is_staff(user: User) -> bool:
    return user.role in STAFF_ROLES


def is_iom(user: User) -> bool:
    return user.role in IOM_ROLES


def _user_from_scope(request: Request) -> User:
    user = request.scope.get("user")
    if not user:
        raise AuthorizationError("User not authenticated")
    return user


def require_permission(*required_permissions: Permission) -> Callable:
    """
    Dependency to require specific permissions.

    Args:
        required_permissions: All of these must be granted

    Returns:
        FastAPI dependency returning the current user
    """
    async def dependency(request: Request) -> User:
        user = _user_from_scope(request)
        granted = get_user_permissions(user)
        missing = [p.value for p in required_permissions if p not in granted]
        if missing:
            logger.warning(
                f"Permission denied for user {user.id} ({user.role}): missing {missing}"
            )
            raise InsufficientPermissions(
                f"Missing required permissions: {', '.join(missing)}"
            )
        return user

    return dependency


def require_roles(*allowed_roles: UserRole) -> Callable:
    """
    Dependency to restrict an endpoint to specific roles.

    Args:
        allowed_roles: Roles allowed to call the endpoint

    Returns:
        FastAPI dependency returning the current user
    """
    async def dependency(request: Request) -> User:
        user = _user_from_scope(request)
        if user.role not in allowed_roles:
            logger.warning(f"Role {user.role} rejected for {request.url.path}")
            raise InsufficientPermissions(
                f"Only {', '.join(r.value for r in allowed_roles)} can perform this action"
            )
        return user

    return dependency
