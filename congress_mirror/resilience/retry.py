"""
Retry with backoff.

Synchronous retry loop used for page-level throttling: the same request is
replayed after a delay computed from RetryConfig.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0              # Initial delay in seconds
    max_delay: float = 60.0              # Maximum delay
    exponential_base: float = 2.0        # 1.0 gives a fixed delay
    jitter: bool = True                  # Add randomness to delay
    jitter_factor: float = 0.1           # Jitter as fraction of delay
    retry_exceptions: tuple = (Exception,)  # Exceptions to retry


@dataclass
class RetryStats:
    """Statistics from a retry operation."""
    attempts: int = 0
    total_delay: float = 0.0
    success: bool = False
    final_exception: Optional[Exception] = None


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay for a given attempt number."""
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * config.jitter_factor
        delay = delay + random.uniform(-jitter_range, jitter_range)

    return max(0, delay)


def should_retry(exc: Exception, config: RetryConfig) -> bool:
    """Determine if an exception should trigger a retry."""
    return isinstance(exc, config.retry_exceptions)


def retry_call(
    func: Callable[P, T],
    *args: P.args,
    config: RetryConfig | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    stats: RetryStats | None = None,
    min_delay_for: Callable[[Exception], float | None] | None = None,
    **kwargs: P.kwargs,
) -> T:
    """
    Call func, retrying retriable exceptions with backoff.

    `min_delay_for` may raise the computed delay for a given exception,
    e.g. to honor a server-supplied Retry-After.

    Raises the last exception once attempts are exhausted, or immediately
    for exceptions config does not retry.
    """
    config = config or RetryConfig()
    stats = stats if stats is not None else RetryStats()

    for attempt in range(1, config.max_attempts + 1):
        stats.attempts = attempt
        try:
            result = func(*args, **kwargs)
            stats.success = True
            return result
        except Exception as e:
            stats.final_exception = e
            if not should_retry(e, config) or attempt >= config.max_attempts:
                raise

            delay = calculate_delay(attempt, config)
            if min_delay_for is not None:
                delay = max(delay, min_delay_for(e) or 0)
            stats.total_delay += delay
            logger.debug(
                "Attempt %d/%d failed: %s. Retrying in %.2fs",
                attempt,
                config.max_attempts,
                e,
                delay,
            )
            if on_retry:
                on_retry(attempt, e, delay)
            sleep(delay)

    raise RuntimeError("Retry loop exited unexpectedly")
