"""
Authentication middleware.

Every non-public request must carry ``Authorization: Bearer <access token>``.
The token only names the user and the login session; the user row (role,
active flag) and the session (expiry, revocation) are always re-read from
the database, so a role change or a logout takes effect immediately.
"""

import logging
from typing import Callable, Optional

import jwt
from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.security import verify_jwt_token, JWTPayload, ACCESS_TOKEN
from core.utils.datetime import ensure_utc, now
from database.engine import AsyncSessionLocal
from database.models.users import User, UserSession

logger = logging.getLogger(__name__)

PUBLIC_ENDPOINTS = [
    "/",
    "/health",
    "/ready",
    f"{settings.api_v1_prefix}/auth/login",
    f"{settings.api_v1_prefix}/auth/register",
    f"{settings.api_v1_prefix}/auth/refresh",
    "/docs",
    "/redoc",
    "/openapi.json",
]

PUBLIC_PREFIXES = ("/health", "/docs", "/redoc", "/openapi")


class AuthenticationError(Exception):
    """Request could not be tied to an active user and live session."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"
    client_message = "Authentication required."


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    client_message = "Authentication token has expired. Please refresh your token."


class TokenInvalidError(AuthenticationError):
    code = "TOKEN_INVALID"
    client_message = "Invalid authentication token."


class SessionInvalidError(AuthenticationError):
    code = "SESSION_INVALID"
    client_message = "Session has expired or is invalid. Please login again."


class UserNotFoundError(AuthenticationError):
    code = "USER_NOT_FOUND"
    client_message = "User account not found."


class UserInactiveError(AuthenticationError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "USER_INACTIVE"
    client_message = "User account is inactive. Please contact an administrator."


def is_public_path(path: str) -> bool:
    return path in PUBLIC_ENDPOINTS or path.startswith(PUBLIC_PREFIXES)


def bearer_token(request: Request) -> Optional[str]:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme == "Bearer" and token:
        return token
    return None


class AuthenticationMiddleware:
    """
    Resolves the caller and stores ``user``, ``session`` and ``jwt_payload``
    in the ASGI scope for the route dependencies.
    """

    def __init__(self, app: Callable, jwt_secret: str, jwt_algorithm: str = "HS256"):
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        if request.method == "OPTIONS" or is_public_path(request.url.path):
            await self.app(scope, receive, send)
            return

        try:
            payload = self._decode(bearer_token(request))
            async with AsyncSessionLocal() as db:
                user, session = await self._load_identity(db, payload)
        except AuthenticationError as exc:
            if not isinstance(exc, TokenExpiredError):
                logger.warning(f"Authentication failed on {request.url.path}: {exc}")
            await self._reject(exc, scope, receive, send)
            return

        scope["user"] = user
        scope["session"] = session
        scope["jwt_payload"] = payload
        await self.app(scope, receive, send)

    def _decode(self, token: Optional[str]) -> JWTPayload:
        if not token:
            raise TokenInvalidError("No authentication token provided")
        try:
            payload = verify_jwt_token(token, self.jwt_secret, self.jwt_algorithm)
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}")

        if payload.get("type") != ACCESS_TOKEN:
            raise TokenInvalidError("Not an access token")
        if not payload.get("user_id") or not payload.get("session_id"):
            raise TokenInvalidError("Token is missing user_id or session_id")
        return payload

    async def _load_identity(
        self, db: AsyncSession, payload: JWTPayload
    ) -> tuple[User, UserSession]:
        """
        Raises:
            UserNotFoundError: user row is gone
            UserInactiveError: account was deactivated
            SessionInvalidError: session is unknown, belongs to someone else,
                expired or was revoked by logout
        """
        user_id = payload["user_id"]
        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        if not user.is_active:
            raise UserInactiveError(f"User {user_id} is inactive")

        session = await db.get(UserSession, payload["session_id"])
        if session is None or session.user_id != user.id:
            raise SessionInvalidError("Session not found")
        if session.revoked_at is not None:
            raise SessionInvalidError("Session has been revoked")
        if ensure_utc(session.expires_at) < now():
            raise SessionInvalidError("Session has expired")

        return user, session

    async def _reject(
        self, exc: AuthenticationError, scope: dict, receive: Callable, send: Callable
    ) -> None:
        response = JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.client_message,
                    "path": scope.get("path"),
                    "method": scope.get("method"),
                    "timestamp": now().isoformat(),
                }
            },
            headers={"WWW-Authenticate": "Bearer"}
            if exc.status_code == status.HTTP_401_UNAUTHORIZED
            else None,
        )
        await response(scope, receive, send)
