"""
Tests for role-based authorization.

Covers the role/permission table, the helper predicates and the
``require_permission``/``require_roles`` dependencies.
"""

import pytest
from unittest.mock import Mock
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from core.middleware.authorization import (
    Permission,
    ROLE_PERMISSIONS,
    AuthorizationError,
    InsufficientPermissions,
    get_user_permissions,
    has_permission,
    is_iom,
    is_staff,
    require_permission,
    require_roles,
)
from core.middleware.error_handling import setup_error_handlers
from database.models.users import UserRole


def make_user(role: UserRole, user_id: int = 1):
    user = Mock()
    user.id = user_id
    user.role = role
    user.is_active = True
    return user


class TestRolePermissions:
    """Test the permission table."""

    def test_every_role_has_an_entry(self):
        assert set(ROLE_PERMISSIONS) == set(UserRole)

    def test_everyone_can_read_periods_and_notifications(self):
        for role in UserRole:
            perms = ROLE_PERMISSIONS[role]
            assert Permission.PERIOD_READ in perms
            assert Permission.NOTIFICATION_READ in perms

    def test_guest_has_nothing_else(self):
        assert ROLE_PERMISSIONS[UserRole.GUEST] == {
            Permission.PERIOD_READ,
            Permission.NOTIFICATION_READ,
        }

    def test_admin_is_superset_of_iom(self):
        assert ROLE_PERMISSIONS[UserRole.PENGURUS_IOM] < ROLE_PERMISSIONS[UserRole.ADMIN]

    def test_only_admin_manages_users_and_periods(self):
        for role in UserRole:
            perms = ROLE_PERMISSIONS[role]
            expected = role == UserRole.ADMIN
            assert (Permission.USER_MANAGE in perms) is expected
            assert (Permission.PERIOD_MANAGE in perms) is expected

    def test_interviewer_cannot_create_interviews(self):
        perms = ROLE_PERMISSIONS[UserRole.PEWAWANCARA]
        assert Permission.SLOT_CREATE in perms
        assert Permission.NOTES_WRITE in perms
        assert Permission.INTERVIEW_CREATE not in perms
        assert Permission.STATUS_UPDATE not in perms

    def test_student_permissions(self):
        perms = ROLE_PERMISSIONS[UserRole.MAHASISWA]
        assert Permission.SLOT_BOOK in perms
        assert Permission.FILE_UPLOAD in perms
        assert Permission.STATUS_REGISTER in perms
        assert Permission.STUDENT_READ not in perms
        assert Permission.NOTES_READ not in perms

    def test_get_user_permissions_accepts_role_values(self):
        """Roles loaded as plain strings resolve the same way."""
        user = make_user("Pewawancara")
        assert get_user_permissions(user) == ROLE_PERMISSIONS[UserRole.PEWAWANCARA]


class TestRoleHelpers:
    @pytest.mark.parametrize("role,staff,iom", [
        (UserRole.ADMIN, True, True),
        (UserRole.PENGURUS_IOM, True, True),
        (UserRole.PEWAWANCARA, True, False),
        (UserRole.MAHASISWA, False, False),
        (UserRole.GUEST, False, False),
    ])
    def test_staff_and_iom(self, role, staff, iom):
        user = make_user(role)
        assert is_staff(user) is staff
        assert is_iom(user) is iom

    def test_has_permission(self):
        assert has_permission(make_user(UserRole.PENGURUS_IOM), Permission.REPORT_READ)
        assert not has_permission(make_user(UserRole.PEWAWANCARA), Permission.REPORT_READ)


@pytest.fixture
def app_with_user():
    """Small app whose requests carry a configurable user in scope."""
    app = FastAPI()
    setup_error_handlers(app)
    holder = {"user": None}

    @app.middleware("http")
    async def inject_user(request, call_next):
        if holder["user"] is not None:
            request.scope["user"] = holder["user"]
        return await call_next(request)

    @app.get("/reports")
    async def reports(user=Depends(require_permission(Permission.REPORT_READ))):
        return {"user_id": user.id}

    @app.get("/book")
    async def book(user=Depends(require_roles(UserRole.MAHASISWA))):
        return {"user_id": user.id}

    return app, holder


class TestPermissionDependencies:
    """Test the route dependencies through a real app."""

    def test_permission_granted(self, app_with_user):
        app, holder = app_with_user
        holder["user"] = make_user(UserRole.PENGURUS_IOM, user_id=42)

        response = TestClient(app).get("/reports")

        assert response.status_code == 200
        assert response.json() == {"user_id": 42}

    def test_permission_denied(self, app_with_user):
        app, holder = app_with_user
        holder["user"] = make_user(UserRole.PEWAWANCARA)

        response = TestClient(app).get("/reports")

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "PERMISSION_DENIED"
        assert "report:read" in error["message"]

    def test_role_allowed(self, app_with_user):
        app, holder = app_with_user
        holder["user"] = make_user(UserRole.MAHASISWA, user_id=5)

        assert TestClient(app).get("/book").status_code == 200

    def test_role_rejected_even_for_admin(self, app_with_user):
        """Role-gated actions are not unlocked by privilege."""
        app, holder = app_with_user
        holder["user"] = make_user(UserRole.ADMIN)

        response = TestClient(app).get("/book")

        assert response.status_code == 403
        assert "Mahasiswa" in response.json()["error"]["message"]

    def test_missing_user_is_forbidden(self, app_with_user):
        app, _ = app_with_user
        response = TestClient(app).get("/reports")
        assert response.status_code == 403


class TestExceptions:
    def test_insufficient_permissions_is_authorization_error(self):
        exc = InsufficientPermissions("nope")
        assert isinstance(exc, AuthorizationError)
        assert exc.message == "nope"

    def test_default_message(self):
        assert "permission" in AuthorizationError().message
