"""
Tests for error handling middleware and exception handlers.
Checks the error envelope, status mapping and sensitive data redaction.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, OperationalError
from redis.exceptions import ConnectionError as RedisConnectionError
from botocore.exceptions import ClientError

from core.middleware.authorization import InsufficientPermissions
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    sanitize_error_message,
    get_safe_error_details,
    setup_error_handlers,
)


class TestSensitiveDataSanitization:
    """Sensitive values never reach error messages."""

    @pytest.mark.parametrize("message", [
        'password="secret123"',
        "token: abc.def.ghi",
        "api_key=sk_live_12345",
        "secret=confidential",
        "Authorization: Bearer xyz",
        "card 4111111111111111",
    ])
    def test_redacts(self, message):
        assert "[REDACTED]" in sanitize_error_message(message)

    def test_plain_message_untouched(self):
        assert sanitize_error_message("Slot already booked") == "Slot already booked"

    def test_safe_error_details(self):
        details = get_safe_error_details(ValueError("password=hunter2"))
        assert details["type"] == "ValueError"
        assert "hunter2" not in details["message"]
        assert "traceback" not in details

    def test_safe_error_details_with_traceback(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            details = get_safe_error_details(exc, include_details=True)
        assert "traceback" in details


class Item(BaseModel):
    quantity: int


@pytest.fixture
def app():
    app = FastAPI()
    setup_error_handlers(app)
    app.add_middleware(ErrorHandlingMiddleware, debug=False)

    @app.get("/http")
    async def http_error():
        raise HTTPException(status_code=404, detail="Slot not found")

    @app.get("/structured")
    async def structured_error():
        raise HTTPException(
            status_code=409,
            detail={"message": "You already have a booked slot", "existing_slot_id": 12},
        )

    @app.post("/validate")
    async def validate(item: Item):
        return item

    @app.get("/integrity")
    async def integrity():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    @app.get("/operational")
    async def operational():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @app.get("/redis")
    async def redis_down():
        raise RedisConnectionError("redis down")

    @app.get("/storage")
    async def storage():
        raise ClientError({"Error": {"Code": "500", "Message": "S3 down"}}, "PutObject")

    @app.get("/forbidden")
    async def forbidden():
        raise InsufficientPermissions("Missing required permissions: report:read")

    @app.get("/value")
    async def value():
        raise ValueError("bad input")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret=abc unexpected")

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:
    """Every error uses the same JSON envelope."""

    def test_http_exception(self, client):
        response = client.get("/http")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "HTTP_EXCEPTION"
        assert error["message"] == "Slot not found"
        assert error["path"] == "/http"
        assert error["method"] == "GET"
        assert "details" not in error

    def test_structured_detail_becomes_details(self, client):
        response = client.get("/structured")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["message"] == "You already have a booked slot"
        assert error["details"] == {"existing_slot_id": 12}

    def test_validation_error(self, client):
        response = client.post("/validate", json={"quantity": "many"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "body.quantity"

    def test_authorization_error(self, client):
        response = client.get("/forbidden")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"


class TestExceptionMapping:
    """Uncaught exceptions map to stable status codes."""

    def test_integrity_error(self, client):
        response = client.get("/integrity")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INTEGRITY_ERROR"

    def test_operational_error(self, client):
        response = client.get("/operational")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_redis_connection_error(self, client):
        response = client.get("/redis")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "CACHE_ERROR"

    def test_storage_error(self, client):
        response = client.get("/storage")
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "STORAGE_ERROR"

    def test_value_error(self, client):
        response = client.get("/value")
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "bad input"

    def test_unexpected_error_hides_details(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_SERVER_ERROR"
        assert error["message"] == "An unexpected error occurred"
        assert "details" not in error
        assert "abc" not in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/crash", headers={"X-Request-ID": "req-123"})
        assert response.json()["error"]["request_id"] == "req-123"
