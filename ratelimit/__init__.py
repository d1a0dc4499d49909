"""Request admission control."""

from .rate_limiter import (
    RateLimiter,
    RateLimitDecision,
    RateLimitCounter,
    RateLimiterError,
    SQLiteRateLimiter,
    SupabaseRateLimiter,
)

__all__ = [
    "RateLimiter",
    "RateLimitDecision",
    "RateLimitCounter",
    "RateLimiterError",
    "SQLiteRateLimiter",
    "SupabaseRateLimiter",
]
