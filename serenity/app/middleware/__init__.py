"""Request gating: shared-secret check and per-client rate limiting."""

from serenity.app.middleware.auth import verify_app_secret
from serenity.app.middleware.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitResult,
    get_client_key,
)

__all__ = [
    "verify_app_secret",
    "FixedWindowRateLimiter",
    "RateLimitResult",
    "get_client_key",
]
