"""Throttle handling and request pacing for the Congress.gov client."""

from .rate_limit_guard import BatchVerdict, RateLimitGuard
from .rate_limiter import RateLimiter, RateLimitExceeded
from .retry import RetryConfig, RetryStats, calculate_delay, retry_call, should_retry

__all__ = [
    "BatchVerdict",
    "RateLimitGuard",
    "RateLimitExceeded",
    "RateLimiter",
    "RetryConfig",
    "RetryStats",
    "calculate_delay",
    "retry_call",
    "should_retry",
]
