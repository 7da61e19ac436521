"""
Authentication endpoints.

Provides:
- Email/password registration and login
- Token refresh
- Logout
- Current user and password change
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator, model_validator

from api.dependencies import require_active_user, raise_for_result
from api.schemas.common import check_email, check_password
from api.services import auth as auth_service
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


# ==================== Request/Response Models ==================== #

class RegisterRequest(BaseModel):
    """Account registration request."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    password: str
    confirm_password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """User login request."""
    email: str
    password: str


class TokenRefreshRequest(BaseModel):
    """Token refresh request."""
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password(v)


class AuthResponse(BaseModel):
    """Authentication response."""
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    user: dict


# ==================== Endpoints ==================== #

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest):
    """
    Register a new account.

    Student addresses become ``Mahasiswa`` with a profile; everyone else
    starts as ``Guest`` until an admin assigns a role.
    """
    result = await auth_service.register_user(data.name, data.email, data.password)
    raise_for_result(result)
    return result


@router.post("/login", response_model=AuthResponse)
async def login(request: Request, data: LoginRequest):
    """Authenticate with email and password."""
    result = await auth_service.login(
        email=data.email.strip(),
        password=data.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    raise_for_result(result)
    return result


@router.post("/refresh", response_model=AuthResponse)
async def refresh_token(data: TokenRefreshRequest):
    """Issue a new token pair for a still-valid session."""
    result = await auth_service.refresh(data.refresh_token)
    raise_for_result(result)
    return result


@router.post("/logout")
async def logout(request: Request, current_user: User = Depends(require_active_user)):
    """Revoke the current session."""
    user_session = request.scope.get("session")
    if user_session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No active session")
    await auth_service.logout(user_session.id)
    logger.info(f"User {current_user.id} logged out")
    return {"success": True, "message": "Logged out"}


@router.get("/me")
async def me(current_user: User = Depends(require_active_user)):
    result = await auth_service.get_me(current_user.id)
    raise_for_result(result)
    return result["user"]


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(require_active_user),
):
    result = await auth_service.change_password(
        current_user.id, data.current_password, data.new_password
    )
    raise_for_result(result)
    return result
