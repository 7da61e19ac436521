"""
Tests for authentication endpoints.

Tests:
- Registration (Guest and student accounts)
- Login / logout
- Token refresh
- Current user and password change
"""

import pytest

from core.config import settings
from database.models.users import UserRole
from tests.conftest import DEFAULT_PASSWORD, create_user

PREFIX = settings.api_v1_prefix


def register(client, email, password="SecurePass123", confirm=None, name="Budi Santoso"):
    return client.post(
        f"{PREFIX}/auth/register",
        json={
            "name": name,
            "email": email,
            "password": password,
            "confirm_password": confirm if confirm is not None else password,
        },
    )


def login(client, email, password=DEFAULT_PASSWORD):
    return client.post(f"{PREFIX}/auth/login", json={"email": email, "password": password})


class TestRegister:
    """Test account registration."""

    def test_register_guest(self, client):
        """Non-student addresses start as Guest."""
        response = register(client, "dosen@kampus.ac.id")

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["role"] == "Guest"
        assert user["email"] == "dosen@kampus.ac.id"
        assert "student" not in user
        assert "password_hash" not in user

    def test_register_student_creates_profile(self, client):
        """Student-domain addresses become Mahasiswa with a NIM-derived profile."""
        response = register(client, f"19723042@{settings.student_email_domain}")

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["role"] == "Mahasiswa"
        assert user["student"] == {
            "nim": "19723042",
            "faculty": "Sekolah Bisnis dan Manajemen",
            "major": "TPB SBM",
        }

    def test_register_student_unknown_prefix(self, client):
        response = register(client, f"16523001@{settings.student_email_domain}")

        assert response.status_code == 201
        assert response.json()["user"]["student"]["faculty"] == "Unknown Faculty"

    def test_register_duplicate_email(self, client):
        register(client, "dosen@kampus.ac.id")
        response = register(client, "dosen@kampus.ac.id")

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Email already registered"

    def test_register_duplicate_email_other_case(self, client):
        register(client, "Budi.S@Kampus.AC.ID")
        response = register(client, "budi.s@kampus.ac.id")

        assert response.status_code == 409

    def test_register_password_mismatch(self, client):
        response = register(client, "dosen@kampus.ac.id", confirm="OtherPass123")
        assert response.status_code == 422

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    def test_register_weak_password(self, client, password):
        response = register(client, "dosen@kampus.ac.id", password=password)
        assert response.status_code == 422

    def test_register_invalid_email(self, client):
        response = register(client, "not-an-email")
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestLogin:
    """Test login."""

    def test_login_with_signup_spelling(self, client):
        """Mixed-case addresses log in with the spelling used at signup."""
        register(client, "Budi.S@Kampus.AC.ID", password=DEFAULT_PASSWORD)

        assert login(client, "Budi.S@Kampus.AC.ID").status_code == 200
        assert login(client, "budi.s@kampus.ac.id").status_code == 200

    def test_login_success(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id")

        response = login(client, "iom@kampus.ac.id")

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "Bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["role"] == "Pengurus_IOM"

    def test_login_token_works(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id")
        token = login(client, "iom@kampus.ac.id").json()["access_token"]

        response = client.get(f"{PREFIX}/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["email"] == "iom@kampus.ac.id"

    def test_login_wrong_password(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id")
        response = login(client, "iom@kampus.ac.id", password="WrongPass123")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid email or password"

    def test_login_unknown_email_same_message(self, client):
        """No account enumeration through error messages."""
        response = login(client, "nobody@kampus.ac.id")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid email or password"

    def test_login_inactive(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id", is_active=False)
        response = login(client, "iom@kampus.ac.id")
        assert response.status_code == 403

    def test_login_student_includes_profile(self, client, student):
        response = login(client, "19723001@mahasiswa.itb.ac.id")
        assert response.json()["user"]["student"]["nim"] == "19723001"


class TestRefreshAndLogout:
    """Test session lifecycle."""

    def test_refresh(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id")
        refresh_token = login(client, "iom@kampus.ac.id").json()["refresh_token"]

        response = client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_refresh_with_access_token_rejected(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id")
        access_token = login(client, "iom@kampus.ac.id").json()["access_token"]

        response = client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": access_token})
        assert response.status_code == 401

    def test_refresh_garbage(self, client):
        response = client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": "garbage"})
        assert response.status_code == 401

    def test_logout_revokes_session(self, client):
        create_user(UserRole.PENGURUS_IOM, email="iom@kampus.ac.id")
        tokens = login(client, "iom@kampus.ac.id").json()
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}

        assert client.post(f"{PREFIX}/auth/logout", headers=headers).status_code == 200

        assert client.get(f"{PREFIX}/auth/me", headers=headers).status_code == 401
        response = client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    def test_logout_requires_auth(self, client):
        assert client.post(f"{PREFIX}/auth/logout").status_code == 401


class TestMeAndPassword:
    def test_me(self, client, iom):
        response = client.get(f"{PREFIX}/auth/me", headers=iom["headers"])

        assert response.status_code == 200
        assert response.json()["role"] == "Pengurus_IOM"

    def test_change_password(self, client, iom):
        response = client.post(
            f"{PREFIX}/auth/change-password",
            headers=iom["headers"],
            json={"current_password": DEFAULT_PASSWORD, "new_password": "BrandNew456"},
        )
        assert response.status_code == 200

        assert login(client, "iom@kampus.ac.id", "BrandNew456").status_code == 200
        assert login(client, "iom@kampus.ac.id").status_code == 401

    def test_change_password_wrong_current(self, client, iom):
        response = client.post(
            f"{PREFIX}/auth/change-password",
            headers=iom["headers"],
            json={"current_password": "WrongPass123", "new_password": "BrandNew456"},
        )
        assert response.status_code == 400

    def test_change_password_weak(self, client, iom):
        response = client.post(
            f"{PREFIX}/auth/change-password",
            headers=iom["headers"],
            json={"current_password": DEFAULT_PASSWORD, "new_password": "weak"},
        )
        assert response.status_code == 422
