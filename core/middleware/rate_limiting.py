"""
Rate limiting backed by Redis.

Requests are counted in a sliding window kept as a sorted set per key
(member = request, score = arrival time). When Redis is unreachable every
request is let through.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as redis
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

UNLIMITED_PATHS = ("/health", "/ready")


class RateLimitStrategy(str, Enum):
    """Who a counter belongs to."""
    IP_ADDRESS = "ip"
    USER_ID = "user"
    ENDPOINT = "endpoint"
    GLOBAL = "global"


class RateLimitWindow(str, Enum):
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


WINDOW_SECONDS = {
    RateLimitWindow.SECOND: 1,
    RateLimitWindow.MINUTE: 60,
    RateLimitWindow.HOUR: 3600,
    RateLimitWindow.DAY: 86400,
}


@dataclass
class RateLimitRule:
    strategy: RateLimitStrategy
    window: RateLimitWindow
    max_requests: int
    paths: Optional[List[str]] = None  # prefixes; None matches every path
    methods: Optional[List[str]] = None

    def applies_to(self, path: str, method: str) -> bool:
        path_ok = not self.paths or any(path.startswith(prefix) for prefix in self.paths)
        method_ok = not self.methods or method in self.methods
        return path_ok and method_ok

    @property
    def window_seconds(self) -> int:
        return WINDOW_SECONDS[self.window]


def default_rules(api_prefix: str = "/api/v1") -> List[RateLimitRule]:
    """Login and signup per client IP, everything else per user."""
    return [
        RateLimitRule(
            strategy=RateLimitStrategy.IP_ADDRESS,
            window=RateLimitWindow.MINUTE,
            max_requests=5,
            paths=[f"{api_prefix}/auth/login", f"{api_prefix}/auth/register"],
            methods=["POST"],
        ),
        RateLimitRule(
            strategy=RateLimitStrategy.USER_ID,
            window=RateLimitWindow.MINUTE,
            max_requests=100,
        ),
    ]


class SlidingWindowRateLimiter:
    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def is_allowed(
        self, key: str, max_requests: int, window_seconds: int
    ) -> tuple[bool, Dict[str, Any]]:
        """
        Record one hit on ``key`` and decide whether it fits the window.

        Rejected hits are removed again so they do not extend the block.
        The metadata dict carries ``limit``, ``remaining``, ``reset`` and
        ``retry_after`` (seconds).
        """
        started = time.time()
        member = f"{started}:{uuid.uuid4().hex[:8]}"
        meta = {"limit": max_requests, "reset": int(started + window_seconds)}

        try:
            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, started - window_seconds)
            pipe.zcard(key)
            pipe.zadd(key, {member: started})
            pipe.expire(key, window_seconds + 60)
            _, in_window, _, _ = await pipe.execute()

            if in_window < max_requests:
                return True, {**meta, "remaining": max_requests - in_window - 1, "retry_after": 0}

            await self.redis.zrem(key, member)
            oldest = await self.redis.zrange(key, 0, 0, withscores=True)
            wait = oldest[0][1] + window_seconds - started if oldest else window_seconds
            return False, {**meta, "remaining": 0, "retry_after": max(0, int(wait))}

        except RedisError as e:
            logger.error(f"Rate limiter unavailable, allowing request: {e}")
            return True, {
                **meta,
                "remaining": max_requests,
                "retry_after": 0,
                "error": "redis_unavailable",
            }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies every matching rule to a request.

    A request is rejected with 429 if any rule is exhausted. The
    ``X-RateLimit-*`` headers describe the rule with the fewest requests left.
    """

    def __init__(
        self,
        app: ASGIApp,
        redis_url: str,
        rules: Optional[List[RateLimitRule]] = None,
        key_prefix: str = "ratelimit",
        enable_headers: bool = True,
    ):
        super().__init__(app)
        self.redis_url = redis_url
        self.rules = default_rules() if rules is None else rules
        self.key_prefix = key_prefix
        self.enable_headers = enable_headers
        self.redis_client: Optional[Redis] = None
        self.limiter: Optional[SlidingWindowRateLimiter] = None

    def _ensure_limiter(self) -> SlidingWindowRateLimiter:
        # redis-py connects on first command, not here
        if self.limiter is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
            )
            self.limiter = SlidingWindowRateLimiter(self.redis_client)
        return self.limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        verdict = await self.check(request)
        if verdict["allowed"]:
            response = await call_next(request)
        else:
            logger.warning(f"Rate limit exceeded on {request.method} {request.url.path}")
            response = JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": {
                        "code": "RATE_LIMIT_EXCEEDED",
                        "message": "Too many requests. Please try again later.",
                        "retry_after": verdict["retry_after"],
                    }
                },
            )

        if self.enable_headers and verdict["limit"]:
            response.headers["X-RateLimit-Limit"] = str(verdict["limit"])
            response.headers["X-RateLimit-Remaining"] = str(verdict["remaining"])
            response.headers["X-RateLimit-Reset"] = str(verdict["reset"])
            if not verdict["allowed"]:
                response.headers["Retry-After"] = str(verdict["retry_after"])
        return response

    async def check(self, request: Request) -> Dict[str, Any]:
        limiter = self._ensure_limiter()
        verdict = {"allowed": True, "limit": 0, "remaining": 0, "reset": 0, "retry_after": 0}
        path, method = request.url.path, request.method

        for rule in (r for r in self.rules if r.applies_to(path, method)):
            allowed, meta = await limiter.is_allowed(
                key=self.generate_key(request, rule),
                max_requests=rule.max_requests,
                window_seconds=rule.window_seconds,
            )
            if not allowed:
                verdict["allowed"] = False
                verdict["retry_after"] = max(verdict["retry_after"], meta["retry_after"])
            if not verdict["limit"] or meta["remaining"] < verdict["remaining"]:
                verdict.update(
                    limit=meta["limit"], remaining=meta["remaining"], reset=meta["reset"]
                )

        return verdict

    def generate_key(self, request: Request, rule: RateLimitRule) -> str:
        """``<prefix>:<strategy>:<window>:<subject>``"""
        if rule.strategy == RateLimitStrategy.IP_ADDRESS:
            subject = self._client_ip(request)
        elif rule.strategy == RateLimitStrategy.USER_ID:
            user = request.scope.get("user")
            subject = str(user.id) if user is not None else f"ip:{self._client_ip(request)}"
        elif rule.strategy == RateLimitStrategy.ENDPOINT:
            subject = request.url.path
        else:
            subject = "global"
        return f"{self.key_prefix}:{rule.strategy.value}:{rule.window.value}:{subject}"

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return (
            request.headers.get("x-real-ip")
            or (request.client.host if request.client else None)
            or "unknown"
        )

    async def close(self):
        if self.redis_client is not None:
            await self.redis_client.aclose()
