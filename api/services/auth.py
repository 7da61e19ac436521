"""Account registration, login sessions and password changes."""

from typing import Any, Dict, Optional
from datetime import timedelta
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
import jwt

from core.config import settings
from core.security import (
    hash_password,
    verify_password,
    create_token_pair,
    verify_jwt_token,
    generate_session_token,
    REFRESH_TOKEN,
)
from core.utils.datetime import now, ensure_utc, isoformat
from database.engine import AsyncSessionLocal
from database.models.users import User, UserRole, UserSession
from database.models.students import Student

logger = logging.getLogger(__name__)

# NIM prefix -> (faculty, major)
NIM_PREFIX_PROGRAMS: Dict[str, tuple[str, str]] = {
    "197": ("Sekolah Bisnis dan Manajemen", "TPB SBM"),
}
UNKNOWN_PROGRAM = ("Unknown Faculty", "Unknown Program")


def program_for_nim(nim: str) -> tuple[str, str]:
    """Faculty and major implied by the first three digits of a NIM."""
    return NIM_PREFIX_PROGRAMS.get(nim[:3], UNKNOWN_PROGRAM)


def is_student_email(email: str) -> bool:
    return email.lower().endswith(f"@{settings.student_email_domain.lower()}")


def user_to_dict(user: User, student: Optional[Student] = None) -> Dict[str, Any]:
    """Public representation of a user."""
    data = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role.value,
        "is_active": user.is_active,
        "created_at": isoformat(user.created_at),
    }
    if student is not None:
        data["student"] = {
            "nim": student.nim,
            "faculty": student.faculty,
            "major": student.major,
        }
    return data


async def register_user(name: str, email: str, password: str) -> Dict[str, Any]:
    """
    Create an account.

    New accounts are Guests until an admin assigns a role, except addresses
    on the student email domain, which become students straight away with a
    profile derived from the NIM in the address.
    """
    async with AsyncSessionLocal() as session:
        existing = await session.execute(
            select(User.id).where(func.lower(User.email) == email.lower())
        )
        if existing.scalar_one_or_none():
            return {"success": False, "error": "Email already registered", "status_code": 409}

        student_account = is_student_email(email)
        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=UserRole.MAHASISWA if student_account else UserRole.GUEST,
        )
        session.add(user)
        await session.flush()

        student = None
        if student_account:
            nim = email[:8]
            faculty, major = program_for_nim(nim)
            student = Student(id=user.id, nim=nim, faculty=faculty, major=major)
            session.add(student)

        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return {"success": False, "error": "Email or NIM already registered", "status_code": 409}

        logger.info(f"Registered user {user.id} as {user.role.value}")
        return {"success": True, "user": user_to_dict(user, student)}


async def _issue_tokens(user: User, user_session: UserSession) -> Dict[str, Any]:
    return create_token_pair(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        session_id=user_session.id,
        refresh_token_expires=ensure_utc(user_session.expires_at) - now(),
    )


async def login(
    email: str,
    password: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """Verify credentials and open a login session."""
    async with AsyncSessionLocal() as session:
        # Addresses are stored as normalized at signup; match case-insensitively
        result = await session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.password_hash or ""):
            # Same message for both cases to prevent email enumeration
            logger.warning("Failed login attempt")
            return {"success": False, "error": "Invalid email or password", "status_code": 401}

        if not user.is_active:
            return {
                "success": False,
                "error": "Account is inactive. Please contact support.",
                "status_code": 403,
            }

        user.last_login_at = now()
        user_session = UserSession(
            user_id=user.id,
            session_token=generate_session_token(),
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            expires_at=now() + timedelta(days=settings.refresh_token_expire_days),
        )
        session.add(user_session)
        await session.commit()

        student = await session.get(Student, user.id)
        tokens = await _issue_tokens(user, user_session)

        logger.info(f"User {user.id} logged in")
        return {"success": True, **tokens, "user": user_to_dict(user, student)}


async def refresh(refresh_token: str) -> Dict[str, Any]:
    """Exchange a refresh token for a new token pair on the same session."""
    invalid = {"success": False, "error": "Invalid refresh token", "status_code": 401}
    try:
        payload = verify_jwt_token(refresh_token)
    except jwt.ExpiredSignatureError:
        return {"success": False, "error": "Refresh token has expired", "status_code": 401}
    except jwt.InvalidTokenError:
        return invalid

    if payload.get("type") != REFRESH_TOKEN or not payload.get("session_id"):
        return invalid

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(UserSession).where(
                UserSession.id == payload["session_id"],
                UserSession.user_id == payload.get("user_id"),
            )
        )
        user_session = result.scalar_one_or_none()
        if (
            not user_session
            or user_session.revoked_at
            or ensure_utc(user_session.expires_at) < now()
        ):
            return {"success": False, "error": "Session has expired", "status_code": 401}

        user = await session.get(User, user_session.user_id)
        if not user or not user.is_active:
            return invalid

        tokens = await _issue_tokens(user, user_session)
        return {"success": True, **tokens, "user": user_to_dict(user)}


async def logout(session_id: int) -> Dict[str, Any]:
    """Revoke a login session."""
    async with AsyncSessionLocal() as session:
        user_session = await session.get(UserSession, session_id)
        if user_session and not user_session.revoked_at:
            user_session.revoked_at = now()
            await session.commit()
        return {"success": True}


async def change_password(
    user_id: int, current_password: str, new_password: str
) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            return {"success": False, "error": "User not found", "status_code": 404}

        if not verify_password(current_password, user.password_hash or ""):
            return {"success": False, "error": "Current password is incorrect", "status_code": 400}

        user.password_hash = hash_password(new_password)
        await session.commit()
        logger.info(f"User {user_id} changed password")
        return {"success": True, "message": "Password updated"}


async def get_me(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            return {"success": False, "error": "User not found", "status_code": 404}
        student = await session.get(Student, user_id)
        return {"success": True, "user": user_to_dict(user, student)}
