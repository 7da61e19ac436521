"""
ASGI entry point: ``uvicorn api.main:app``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health
from api.routes.v1 import (
    auth,
    files,
    interviews,
    notes,
    notifications,
    periods,
    reports,
    scoring,
    slots,
    statuses,
    students,
    users,
)
from core.config import settings
from core.middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    RateLimitMiddleware,
    RateLimitRule,
    RateLimitStrategy,
    RateLimitWindow,
    StructuredLoggingMiddleware,
    default_rules,
    setup_error_handlers,
    setup_logging,
)
from database.engine import close_db, init_db
from database.seed import seed_defaults

VERSION = "0.1.0"

V1_ROUTERS = (
    auth.router,
    users.router,
    students.router,
    periods.router,
    statuses.router,
    files.router,
    interviews.router,
    slots.router,
    notes.router,
    scoring.questions_router,
    scoring.score_matrix_router,
    reports.reports_router,
    reports.statistics_router,
    notifications.router,
)

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    await init_db()
    if settings.seed_on_startup:
        await seed_defaults()
    yield
    logger.info(f"Stopping {settings.app_name}")
    await close_db()


def rate_limit_rules() -> list[RateLimitRule]:
    """Credential endpoints per IP, then per-user second/minute/hour budgets."""
    per_user = [
        (RateLimitWindow.SECOND, settings.rate_limit_per_second),
        (RateLimitWindow.MINUTE, settings.rate_limit_per_minute),
        (RateLimitWindow.HOUR, settings.rate_limit_per_hour),
    ]
    credentials_rule = default_rules(settings.api_v1_prefix)[0]
    return [credentials_rule] + [
        RateLimitRule(strategy=RateLimitStrategy.USER_ID, window=window, max_requests=limit)
        for window, limit in per_user
    ]


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Scholarship registration, screening, interview scheduling and scoring",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    setup_error_handlers(app)

    # add_middleware wraps the current stack, so the last one added runs first:
    # CORS -> errors -> logging -> authentication -> rate limiting -> routes
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware, redis_url=settings.redis_url, rules=rate_limit_rules()
        )
    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=settings.jwt_secret_key,
        jwt_algorithm=settings.jwt_algorithm,
    )
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
        log_response_body=settings.log_response_body,
        max_body_size=settings.log_max_body_size,
    )
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["health"])
    for router in V1_ROUTERS:
        app.include_router(router, prefix=settings.api_v1_prefix)

    @app.get("/")
    async def root():
        return {"name": settings.app_name, "version": VERSION, "status": "running"}

    return app


app = create_app()
