from .limiter import (
    FixedWindowRateLimiter,
    RateLimiterBase,
    RateLimitResult,
    rate_limiter,
)
from .middleware import RATE_LIMIT_MESSAGE, RateLimitMiddleware

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimiterBase",
    "RateLimitResult",
    "rate_limiter",
    "RATE_LIMIT_MESSAGE",
    "RateLimitMiddleware",
]
