"""HTTP middleware and role checks shared by every API route."""

from core.middleware.authentication import AuthenticationError, AuthenticationMiddleware
from core.middleware.authorization import (
    ROLE_PERMISSIONS,
    AuthorizationError,
    InsufficientPermissions,
    Permission,
    get_user_permissions,
    require_permission,
    require_roles,
)
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    sanitize_error_message,
    setup_error_handlers,
)
from core.middleware.logging import StructuredLoggingMiddleware, setup_logging
from core.middleware.rate_limiting import (
    RateLimitMiddleware,
    RateLimitRule,
    RateLimitStrategy,
    RateLimitWindow,
    SlidingWindowRateLimiter,
    default_rules,
)

__all__ = [
    "AuthenticationError",
    "AuthenticationMiddleware",
    "AuthorizationError",
    "ErrorHandlingMiddleware",
    "InsufficientPermissions",
    "Permission",
    "ROLE_PERMISSIONS",
    "RateLimitMiddleware",
    "RateLimitRule",
    "RateLimitStrategy",
    "RateLimitWindow",
    "SlidingWindowRateLimiter",
    "StructuredLoggingMiddleware",
    "default_rules",
    "get_user_permissions",
    "require_permission",
    "require_roles",
    "sanitize_error_message",
    "setup_error_handlers",
    "setup_logging",
]
