"""
Tests for the authentication middleware.

Tokens are real JWTs and sessions live in the test database.
"""

import pytest
from datetime import timedelta
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from core.config import settings
from core.middleware.authentication import AuthenticationMiddleware, PUBLIC_ENDPOINTS
from core.security import create_access_token, create_refresh_token
from core.utils.datetime import now
from database.engine import AsyncSessionLocal
from database.models.users import User, UserRole, UserSession
from tests.conftest import create_user, run


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=settings.jwt_secret_key,
        jwt_algorithm=settings.jwt_algorithm,
    )

    @app.get("/protected")
    async def protected(request: Request):
        user = request.scope["user"]
        return {
            "user_id": user.id,
            "role": user.role.value,
            "session_id": request.scope["session"].id,
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return TestClient(app, raise_server_exceptions=False)


def _update_session(session_id: int, **values):
    async def _update():
        async with AsyncSessionLocal() as db:
            user_session = await db.get(UserSession, session_id)
            for key, value in values.items():
                setattr(user_session, key, value)
            await db.commit()

    run(_update())


def _deactivate(user_id: int):
    async def _update():
        async with AsyncSessionLocal() as db:
            user = await db.get(User, user_id)
            user.is_active = False
            await db.commit()

    run(_update())


class TestPublicEndpoints:
    def test_public_paths_listed(self):
        assert f"{settings.api_v1_prefix}/auth/login" in PUBLIC_ENDPOINTS
        assert f"{settings.api_v1_prefix}/auth/register" in PUBLIC_ENDPOINTS
        assert "/health" in PUBLIC_ENDPOINTS

    def test_health_needs_no_token(self, client):
        assert client.get("/health").status_code == 200

    def test_preflight_passes(self, client):
        response = client.options("/protected")
        assert response.status_code != 401


class TestTokenValidation:
    """Test rejection of bad tokens."""

    def test_missing_token(self, client):
        response = client.get("/protected")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_malformed_token(self, client):
        response = client.get("/protected", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"

    def test_wrong_scheme(self, client):
        response = client.get("/protected", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_expired_token(self, client):
        user = create_user(UserRole.PENGURUS_IOM)
        token = create_access_token(
            user_id=user["id"],
            email="x@kampus.ac.id",
            role="Pengurus_IOM",
            session_id=user["session_id"],
            expires_delta=timedelta(seconds=-5),
        )
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_EXPIRED"

    def test_refresh_token_not_accepted(self, client):
        user = create_user(UserRole.PENGURUS_IOM)
        token = create_refresh_token(user_id=user["id"], session_id=user["session_id"])
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_without_session(self, client):
        user = create_user(UserRole.PENGURUS_IOM)
        token = create_access_token(user_id=user["id"], email="x@kampus.ac.id", role="Pengurus_IOM")
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestSessionValidation:
    """Test user and session checks against the database."""

    def test_valid_session(self, client):
        user = create_user(UserRole.MAHASISWA, nim="19723011")
        response = client.get("/protected", headers=user["headers"])

        assert response.status_code == 200
        assert response.json() == {
            "user_id": user["id"],
            "role": "Mahasiswa",
            "session_id": user["session_id"],
        }

    def test_revoked_session(self, client):
        user = create_user(UserRole.PENGURUS_IOM)
        _update_session(user["session_id"], revoked_at=now())

        response = client.get("/protected", headers=user["headers"])

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_INVALID"

    def test_expired_session(self, client):
        user = create_user(UserRole.PENGURUS_IOM)
        _update_session(user["session_id"], expires_at=now() - timedelta(minutes=1))

        response = client.get("/protected", headers=user["headers"])

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_INVALID"

    def test_session_of_other_user(self, client):
        first = create_user(UserRole.PENGURUS_IOM)
        second = create_user(UserRole.PENGURUS_IOM)
        token = create_access_token(
            user_id=first["id"],
            email="x@kampus.ac.id",
            role="Pengurus_IOM",
            session_id=second["session_id"],
        )
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["error"]["code"] == "SESSION_INVALID"

    def test_unknown_user(self, client):
        token = create_access_token(user_id=9999, email="x@kampus.ac.id", role="Admin", session_id=1)
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    def test_inactive_user(self, client):
        user = create_user(UserRole.PENGURUS_IOM)
        _deactivate(user["id"])

        response = client.get("/protected", headers=user["headers"])

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "USER_INACTIVE"

    def test_role_comes_from_database(self, client):
        """A token minted with a stale role still resolves the stored role."""
        user = create_user(UserRole.GUEST)
        token = create_access_token(
            user_id=user["id"], email="x@kampus.ac.id", role="Admin", session_id=user["session_id"]
        )
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["role"] == "Guest"
