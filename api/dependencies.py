"""FastAPI dependencies for dependency injection."""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status, Request

from database.models.users import User


async def get_current_user(request: Request) -> Optional[User]:
    """
    Get current authenticated user from the request scope.
    Returns None if not authenticated.
    """
    return request.scope.get("user")


async def require_authenticated_user(request: Request) -> User:
    """Require user to be authenticated."""
    user = await get_current_user(request)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def require_active_user(request: Request) -> User:
    """Require user to be authenticated and active."""
    current_user = await require_authenticated_user(request)
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )
    return current_user


def raise_for_result(result: Dict[str, Any], default_error: str = "Request failed") -> Dict[str, Any]:
    """
    Turn a failed service result into an HTTPException.

    Services return ``{"success": False, "error": ..., "status_code": ...}``
    on failure; extra keys (other than those) are passed to the client as
    error details.
    """
    if result.get("success", True):
        return result

    status_code = result.get("status_code", status.HTTP_400_BAD_REQUEST)
    message = result.get("error") or default_error
    extra = {
        k: v for k, v in result.items() if k not in ("success", "error", "status_code")
    }
    detail: Any = {"message": message, **extra} if extra else message
    raise HTTPException(status_code=status_code, detail=detail)
