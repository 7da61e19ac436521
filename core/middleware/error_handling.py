"""
Error handling for the API.

Every failure leaves the service as the same JSON envelope::

    {"error": {"code", "message", "path", "method", ["details"], ["request_id"]}}

Messages are scrubbed of credentials and identity numbers before they are
returned or logged.
"""

import logging
import re
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from botocore.exceptions import BotoCoreError, ClientError

from core.middleware.authorization import AuthorizationError
from core.middleware.authentication import AuthenticationError

logger = logging.getLogger(__name__)

SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'X-Amz-(?:Signature|Credential)=[^&\s"]+', re.IGNORECASE),
    re.compile(r'\bAKIA[0-9A-Z]{16}\b'),  # AWS access key id
    re.compile(r'\b\d{16}\b'),  # NIK or card number
]


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from an error message.

    Args:
        message: Original error message

    Returns:
        Message with every sensitive match replaced by ``[REDACTED]``
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Type and scrubbed message of an exception, plus the traceback when
    ``include_details`` is set (debug only).
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exc()
    return details


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """One entry per failing field; input values are echoed only when harmless."""
    errors = []
    for error in exc.errors():
        entry = {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        value = error.get("input")
        if isinstance(value, (str, int, float, bool)):
            if not any(pattern.search(str(value)) for pattern in SENSITIVE_PATTERNS):
                entry["input"] = value
        errors.append(entry)
    return errors


@dataclass(frozen=True)
class ErrorMapping:
    """How an uncaught exception type is reported."""

    exc_types: tuple
    status_code: int
    code: str
    message: Optional[str]  # None: use the scrubbed exception text
    level: int = logging.ERROR
    debug_details: bool = False


# Checked in order; subclasses come before their bases.
ERROR_MAPPINGS = (
    ErrorMapping((IntegrityError,), status.HTTP_409_CONFLICT, "INTEGRITY_ERROR",
                 "Database integrity constraint violated", logging.WARNING, debug_details=True),
    ErrorMapping((OperationalError,), status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_ERROR",
                 "Database service temporarily unavailable"),
    ErrorMapping((SQLAlchemyError,), status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR",
                 "A database error occurred", debug_details=True),
    ErrorMapping((RedisConnectionError,), status.HTTP_503_SERVICE_UNAVAILABLE, "CACHE_ERROR",
                 "Cache service temporarily unavailable"),
    ErrorMapping((RedisError,), status.HTTP_500_INTERNAL_SERVER_ERROR, "CACHE_ERROR",
                 "A cache error occurred", debug_details=True),
    ErrorMapping((ClientError, BotoCoreError), status.HTTP_502_BAD_GATEWAY, "STORAGE_ERROR",
                 "Object storage request failed"),
    ErrorMapping((PermissionError, AuthorizationError), status.HTTP_403_FORBIDDEN,
                 "PERMISSION_DENIED", "You don't have permission to perform this action",
                 logging.WARNING),
    ErrorMapping((ValueError,), status.HTTP_400_BAD_REQUEST, "INVALID_INPUT", None,
                 logging.WARNING),
    ErrorMapping((TimeoutError,), status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT",
                 "The request timed out"),
)

UNEXPECTED = ErrorMapping((Exception,), status.HTTP_500_INTERNAL_SERVER_ERROR,
                          "INTERNAL_SERVER_ERROR", "An unexpected error occurred",
                          debug_details=True)


def error_body(
    path: str,
    method: str,
    code: str,
    message: str,
    details: Any = None,
    request_id: Optional[str] = None,
) -> dict:
    body = {"error": {"code": code, "message": message, "path": path, "method": method}}
    if details is not None:
        body["error"]["details"] = details
    if request_id:
        body["error"]["request_id"] = request_id
    return body


def _request_id(scope: dict) -> Optional[str]:
    for name, value in scope.get("headers", []):
        if name == b"x-request-id":
            return value.decode()
    return None


class ErrorHandlingMiddleware:
    """
    Outermost ASGI layer: turns anything that escaped the route handlers into
    the error envelope.
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: dict) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                logger.error(
                    f"Exception after response started: {scope.get('method')} "
                    f"{scope.get('path')} - {type(exc).__name__}",
                    exc_info=True,
                )
                return
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> JSONResponse:
        path = scope.get("path", "unknown")
        method = scope.get("method", "unknown")

        if isinstance(exc, StarletteHTTPException):
            message = sanitize_error_message(str(exc.detail))
            logger.warning(f"HTTP exception: {method} {path} - {exc.status_code} {message}")
            return JSONResponse(
                status_code=exc.status_code,
                content=error_body(path, method, "HTTP_EXCEPTION", message,
                                   request_id=_request_id(scope)),
            )

        if isinstance(exc, RequestValidationError):
            details = format_validation_errors(exc)
            logger.warning(f"Validation error: {method} {path} - {details}")
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content=error_body(path, method, "VALIDATION_ERROR", "Request validation failed",
                                   details, _request_id(scope)),
            )

        mapping = next(
            (m for m in ERROR_MAPPINGS if isinstance(exc, m.exc_types)), UNEXPECTED
        )
        text = sanitize_error_message(str(exc))
        message = mapping.message or text or "Invalid input provided"
        details = None
        if self.debug and mapping.debug_details:
            details = get_safe_error_details(exc, include_details=True)

        logger.log(
            mapping.level,
            f"{mapping.code}: {method} {path} - {type(exc).__name__}: {text}",
            exc_info=mapping.level >= logging.ERROR,
        )
        return JSONResponse(
            status_code=mapping.status_code,
            content=error_body(path, method, mapping.code, message, details, _request_id(scope)),
        )


def setup_error_handlers(app):
    """
    Register exception handlers that answer inside FastAPI, before the
    middleware sees the exception.

    ``HTTPException`` details may be a dict (see ``api.dependencies.raise_for_result``):
    ``message`` becomes the error message and the other keys go to ``details``.
    """

    def respond(request: Request, status_code: int, code: str, message: str,
                details: Any = None, headers: Optional[dict] = None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_body(
                str(request.url.path),
                request.method,
                code,
                message,
                details,
                request.headers.get("x-request-id"),
            ),
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        details = None
        if isinstance(detail, dict):
            details = {k: v for k, v in detail.items() if k != "message"} or None
            detail = detail.get("message", "")
        return respond(
            request,
            exc.status_code,
            "HTTP_EXCEPTION",
            sanitize_error_message(str(detail)),
            details,
            getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return respond(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            format_validation_errors(exc),
        )

    @app.exception_handler(AuthorizationError)
    async def authorization_exception_handler(request: Request, exc: AuthorizationError):
        return respond(
            request,
            status.HTTP_403_FORBIDDEN,
            "PERMISSION_DENIED",
            sanitize_error_message(exc.message),
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_exception_handler(request: Request, exc: AuthenticationError):
        return respond(
            request,
            status.HTTP_401_UNAUTHORIZED,
            "NOT_AUTHENTICATED",
            "Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity error: {request.method} {request.url.path}")
        return respond(
            request,
            status.HTTP_409_CONFLICT,
            "INTEGRITY_ERROR",
            "Database integrity constraint violated",
        )
