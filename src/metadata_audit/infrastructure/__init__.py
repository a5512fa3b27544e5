"""
Infrastructure Package.

Provides request pacing for polite concurrent fetching.
"""

from .rate_limiter import (
    RateLimiter,
    RateLimitConfig,
    RateLimiterMetrics,
)

__all__ = [
    "RateLimiter",
    "RateLimitConfig",
    "RateLimiterMetrics",
]
