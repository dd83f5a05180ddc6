"""
Rate Limiter Implementation.

Token bucket shared by the worker threads of a fetch fan-out so the
client as a whole stays under the upstream hourly request budget.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a token could not be acquired within the timeout."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for '{name}'. Retry after {retry_after:.1f}s")


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    rate: float  # Tokens per second
    burst: int  # Maximum bucket capacity
    name: str = "default"


@dataclass
class RateLimiterState:
    tokens: float
    last_update: float


class RateLimiter:
    """
    Token bucket rate limiter.

    Allows bursts up to 'burst' size, then limits to 'rate' requests per second.

    Usage:
        limiter = RateLimiter.per_hour(5000, name="congress_api")
        limiter.acquire()  # blocks until a token is free
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = RateLimiterConfig(rate=rate, burst=burst, name=name)
        self._clock = clock
        self._sleep = sleep
        self._state = RateLimiterState(tokens=float(burst), last_update=clock())
        self._lock = threading.Lock()

    @classmethod
    def per_hour(cls, requests_per_hour: int, burst: int = 10, name: str = "default", **kwargs):
        return cls(rate=requests_per_hour / 3600.0, burst=burst, name=name, **kwargs)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._state.last_update
        self._state.tokens = min(self.config.burst, self._state.tokens + elapsed * self.config.rate)
        self._state.last_update = now

    def allow(self, tokens: float = 1.0) -> bool:
        """Consume tokens if available; never blocks."""
        with self._lock:
            self._refill()
            if self._state.tokens >= tokens:
                self._state.tokens -= tokens
                return True
            return False

    def retry_after(self, tokens: float = 1.0) -> float:
        """Seconds until `tokens` are available."""
        with self._lock:
            self._refill()
            if self._state.tokens >= tokens:
                return 0.0
            return (tokens - self._state.tokens) / self.config.rate

    def acquire(self, tokens: float = 1.0, timeout: float | None = None) -> None:
        """
        Block until tokens are available.

        Raises:
            RateLimitExceeded: if the wait would exceed `timeout`
        """
        waited = 0.0
        while not self.allow(tokens):
            delay = self.retry_after(tokens)
            if timeout is not None and waited + delay > timeout:
                raise RateLimitExceeded(self.config.name, delay)
            self._sleep(delay)
            waited += delay
        if waited:
            logger.debug("Rate limiter '%s' paced request by %.2fs", self.config.name, waited)
