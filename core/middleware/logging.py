"""
Request logging as JSON events.

Each request emits ``request_started`` and ``request_completed`` carrying the
request id (echoed as ``x-request-id``) and the authenticated user id.
Passwords, tokens, push-subscription keys, e-mail addresses, phone numbers
and NIKs are masked before anything is written.
"""

import json
import logging
import re
import time
import traceback
import uuid
from typing import Any, Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

SENSITIVE_FIELD_PATTERNS = [
    re.compile(r"password|token|secret|authorization|cookie|session", re.IGNORECASE),
    re.compile(r"^keys$|p256dh|auth_key", re.IGNORECASE),  # web push subscription
    re.compile(r"phone", re.IGNORECASE),
]

PII_PATTERNS = [
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"(?:\+62|\b0)8\d{7,11}\b"), "[PHONE]"),
    (re.compile(r"\b\d{16}\b"), "[NIK]"),
]

SKIP_PATHS = ("/health", "/ready", "/docs", "/redoc", "/openapi.json")

BODY_METHODS = ("POST", "PUT", "PATCH")

# (upper bound in seconds, label)
PERFORMANCE_BANDS = ((1.0, "fast"), (5.0, "moderate"))

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "aiobotocore")


def is_sensitive_field(field_name: str) -> bool:
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Copy of ``data`` with sensitive keys redacted and PII in strings replaced.

    Nesting beyond ``max_depth`` is replaced by ``[MAX_DEPTH_EXCEEDED]``.
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, str):
        for pattern, replacement in PII_PATTERNS:
            data = pattern.sub(replacement, data)
        return data
    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if is_sensitive_field(str(key)):
                masked[key] = "[REDACTED]"
            else:
                masked[key] = mask_sensitive_data(value, depth + 1, max_depth)
        return masked
    return data


def mask_headers(headers: dict) -> dict:
    """Redact sensitive headers; ``Authorization`` keeps its scheme."""
    masked = {}
    for name, value in headers.items():
        if not is_sensitive_field(name):
            masked[name] = value
            continue
        scheme, sep, _ = value.partition(" ")
        if name.lower() == "authorization" and sep:
            masked[name] = f"{scheme} [REDACTED]"
        else:
            masked[name] = "[REDACTED]"
    return masked


def should_log_request(path: str) -> bool:
    return not path.startswith(SKIP_PATHS)


def get_client_ip(request: Request) -> str:
    """IPv4 address of the caller with the last octet hidden, else ``unknown``."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client:
        ip = request.client.host
    else:
        return "unknown"

    octets = ip.split(".")
    if len(octets) != 4:
        return "unknown"
    return ".".join(octets[:3] + ["xxx"])


def performance_label(duration: float) -> str:
    for limit, label in PERFORMANCE_BANDS:
        if duration <= limit:
            return label
    return "slow"


def completion_level(status_code: Optional[int]) -> int:
    if status_code is None or status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Args:
        log_request_body: include masked JSON bodies of POST/PUT/PATCH requests
        log_response_body: include the response content length
        max_body_size: larger bodies are logged as their size only
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        log_response_body: bool = False,
        max_body_size: int = 1024,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.log_response_body = log_response_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response

        await self._log_started(request, request_id)

        started = time.perf_counter()
        response = None
        failure = None
        try:
            response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response
        except Exception as exc:
            failure = {"type": type(exc).__name__, "message": str(exc)}
            raise
        finally:
            self._log_completed(request, request_id, response, failure, time.perf_counter() - started)

    async def _log_started(self, request: Request, request_id: str) -> None:
        event = {
            "event": "request_started",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": mask_sensitive_data(dict(request.query_params)),
            "client_ip": get_client_ip(request),
            "user_agent": request.headers.get("user-agent", "unknown"),
            "headers": mask_headers(dict(request.headers)),
        }
        if self.log_request_body and request.method in BODY_METHODS:
            body = await self._read_body(request)
            if body:
                event["body"] = mask_sensitive_data(body)

        logger.info(json.dumps(event), extra={"request_id": request_id})

    def _log_completed(
        self,
        request: Request,
        request_id: str,
        response: Optional[Response],
        failure: Optional[dict],
        duration: float,
    ) -> None:
        user_id = getattr(request.scope.get("user"), "id", None)
        status_code = response.status_code if response is not None else None
        event = {
            "event": "request_completed",
            "request_id": request_id,
            "user_id": user_id,
            "method": request.method,
            "path": request.url.path,
            "duration_ms": round(duration * 1000, 2),
            "status_code": status_code or 500,
            "performance": performance_label(duration),
        }
        if failure:
            event["error"] = mask_sensitive_data(failure)
        if self.log_response_body and response is not None:
            event["content_length"] = response.headers.get("content-length")

        logger.log(
            completion_level(status_code),
            json.dumps(event),
            extra={"request_id": request_id, "user_id": user_id},
        )

    async def _read_body(self, request: Request) -> Any:
        """JSON bodies are parsed; uploads and other types are only described."""
        content_type = request.headers.get("content-type", "")
        if "application/json" not in content_type:
            return {"_content_type": content_type}

        raw = await request.body()
        if len(raw) > self.max_body_size:
            return {"_truncated": True, "_size": len(raw)}
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Request body is not valid JSON: {e}")
            return None


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, with request context when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("request_id", "user_id"):
            value = getattr(record, attr, None)
            if value is not None:
                entry[attr] = value
        if record.exc_info:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }
        return json.dumps(entry, default=str)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """Replace the root handlers with a single console handler."""
    level = getattr(logging, log_level.upper())

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        JsonLogFormatter()
        if json_logs
        else logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


