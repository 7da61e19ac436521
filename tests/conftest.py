"""Shared fixtures and utilities for tests."""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Settings are read at import time, so the environment must be ready before
# any application module is imported.
_DB_DIR = tempfile.mkdtemp(prefix="scholarship-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["APP_ENV"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["JSON_LOGS"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_S3_BUCKET", "test-bucket")
os.environ.setdefault("STUDENT_EMAIL_DOMAIN", "mahasiswa.itb.ac.id")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from core.security import create_access_token, hash_password  # noqa: E402
from core.utils.datetime import now  # noqa: E402
from database.engine import AsyncSessionLocal, drop_db, init_db  # noqa: E402
from database.models.periods import Period  # noqa: E402
from database.models.statuses import Status  # noqa: E402
from database.models.students import Student  # noqa: E402
from database.models.users import User, UserRole, UserSession  # noqa: E402

DEFAULT_PASSWORD = "SecurePass123"


def run(coro):
    """Run a coroutine on a private loop without touching the current one."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture(autouse=True)
def fresh_database():
    """Recreate the schema for every test."""
    run(drop_db())
    run(init_db())
    yield


async def _create_user(
    role: UserRole,
    email: str,
    name: str,
    password: str,
    nim: str | None,
    faculty: str,
    major: str,
    is_active: bool,
) -> dict:
    async with AsyncSessionLocal() as session:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        session.add(user)
        await session.flush()
        if nim is not None:
            session.add(Student(id=user.id, nim=nim, faculty=faculty, major=major))
        user_session = UserSession(
            user_id=user.id,
            session_token=f"test-session-{user.id}",
            expires_at=now() + timedelta(days=1),
        )
        session.add(user_session)
        await session.commit()

        token = create_access_token(
            user_id=user.id,
            email=user.email,
            role=role.value,
            session_id=user_session.id,
        )
        return {
            "id": user.id,
            "user": user,
            "session_id": user_session.id,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }


def create_user(
    role: UserRole = UserRole.GUEST,
    email: str | None = None,
    name: str | None = None,
    password: str = DEFAULT_PASSWORD,
    nim: str | None = None,
    faculty: str = "Sekolah Bisnis dan Manajemen",
    major: str = "TPB SBM",
    is_active: bool = True,
) -> dict:
    """Create a user with a live session; students get a profile when ``nim`` is given."""
    create_user.counter += 1
    n = create_user.counter
    return run(
        _create_user(
            role,
            email or f"user{n}@kampus.ac.id",
            name or f"User {n:03d}",
            password,
            nim,
            faculty,
            major,
            is_active,
        )
    )


create_user.counter = 0


def create_period(
    name: str = "2025/2026",
    is_current: bool = True,
    is_open: bool = True,
    start: datetime | None = None,
    end: datetime | None = None,
) -> int:
    async def _create():
        async with AsyncSessionLocal() as session:
            period = Period(
                period=name,
                start_date=start or datetime(2025, 4, 1, 8, tzinfo=timezone.utc),
                end_date=end or datetime(2025, 4, 30, 17, tzinfo=timezone.utc),
                is_current=is_current,
                is_open=is_open,
            )
            session.add(period)
            await session.commit()
            return period.id

    return run(_create())


def register_status(student_id: int, period_id: int, **fields) -> None:
    async def _create():
        async with AsyncSessionLocal() as session:
            session.add(Status(student_id=student_id, period_id=period_id, **fields))
            await session.commit()

    run(_create())


@pytest.fixture
def client():
    """Create test client."""
    from fastapi.testclient import TestClient
    from api.main import app

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def admin():
    return create_user(UserRole.ADMIN, email="admin@kampus.ac.id", name="Admin")


@pytest.fixture
def iom():
    return create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id", name="Iom Staff")


@pytest.fixture
def interviewer():
    return create_user(UserRole.PEWAWANCARA, email="pewawancara@kampus.ac.id", name="Interviewer")


@pytest.fixture
def student():
    return create_user(
        UserRole.MAHASISWA,
        email="19723001@mahasiswa.itb.ac.id",
        name="Budi Santoso",
        nim="19723001",
    )


@pytest.fixture
def other_student():
    return create_user(
        UserRole.MAHASISWA,
        email="19723002@mahasiswa.itb.ac.id",
        name="Citra Lestari",
        nim="19723002",
    )


@pytest.fixture
def guest():
    return create_user(UserRole.GUEST, email="guest@kampus.ac.id", name="Guest")


@pytest.fixture
def current_period():
    return create_period()


@pytest.fixture
def mock_storage():
    """Object storage replaced with AsyncMocks."""
    storage = MagicMock()
    storage.upload = AsyncMock(side_effect=lambda data, key, **kwargs: key)
    storage.delete = AsyncMock(return_value=True)
    storage.get_presigned_url = AsyncMock(
        side_effect=lambda key, **kwargs: f"https://storage.test/{key}?signature=x"
    )
    with patch("api.services.files.get_storage", return_value=storage):
        yield storage
