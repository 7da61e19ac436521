"""
Security utilities: password hashing and JWT handling.

Passwords are stored as bcrypt hashes. Access and refresh tokens are signed
JWTs carrying the user id, role and the id of the login session they belong
to, so that revoking the session invalidates both.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from core.config import settings

JWTPayload = Dict[str, Any]

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def _encode(claims: JWTPayload, secret_key: str, expires_delta: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    secret_key: Optional[str] = None,
    session_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: User primary key
        email: User email
        role: User role value
        secret_key: Signing key (defaults to JWT_SECRET_KEY)
        session_id: Login session the token belongs to
        expires_delta: Lifetime (defaults to ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        Encoded JWT
    """
    claims = {
        "type": ACCESS_TOKEN,
        "user_id": user_id,
        "email": email,
        "role": role,
    }
    if session_id is not None:
        claims["session_id"] = session_id
    return _encode(
        claims,
        secret_key or settings.jwt_secret_key,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(
    user_id: int,
    secret_key: Optional[str] = None,
    session_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed refresh token."""
    claims = {"type": REFRESH_TOKEN, "user_id": user_id}
    if session_id is not None:
        claims["session_id"] = session_id
    return _encode(
        claims,
        secret_key or settings.jwt_secret_key,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def verify_jwt_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> JWTPayload:
    """
    Decode and verify a JWT.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed or badly signed
    """
    return jwt.decode(
        token,
        secret_key or settings.jwt_secret_key,
        algorithms=[algorithm or settings.jwt_algorithm],
    )


def create_token_pair(
    user_id: int,
    email: str,
    role: str,
    secret_key: Optional[str] = None,
    session_id: Optional[int] = None,
    access_token_expires: Optional[timedelta] = None,
    refresh_token_expires: Optional[timedelta] = None,
) -> Dict[str, Any]:
    """Create an access + refresh token pair."""
    access_expires = access_token_expires or timedelta(
        minutes=settings.access_token_expire_minutes
    )
    return {
        "access_token": create_access_token(
            user_id=user_id,
            email=email,
            role=role,
            secret_key=secret_key,
            session_id=session_id,
            expires_delta=access_expires,
        ),
        "refresh_token": create_refresh_token(
            user_id=user_id,
            secret_key=secret_key,
            session_id=session_id,
            expires_delta=refresh_token_expires,
        ),
        "token_type": "Bearer",
        "expires_in": int(access_expires.total_seconds()),
    }


def generate_session_token() -> str:
    """Random opaque token identifying a login session."""
    return secrets.token_urlsafe(48)
