"""
Throttle handling around outbound Congress.gov calls.

Two scopes:
- page level: a single 429 is retried in place after a short fixed delay,
  stretched to the upstream Retry-After when that is longer.
- batch level: a 429 anywhere in a concurrent fan-out pauses the whole
  batch for a long cooldown, after which the same batch is replayed.

A throttled call always ends as a result, a non-retriable exception, or
a ThrottledError that tells the caller to retry the whole unit.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, ParamSpec, TypeVar

from ..errors import ThrottledError
from .retry import RetryConfig, retry_call

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def _retry_after(exc: Exception) -> float | None:
    return getattr(exc, "retry_after", None)


class BatchVerdict(str, Enum):
    """What the orchestrator does with a fetched batch."""

    PROCEED = "proceed"
    COOL_DOWN = "cool_down"
    GIVE_UP = "give_up"


class RateLimitGuard:
    def __init__(
        self,
        page_retry_delay: float = 5.0,
        page_retry_attempts: int = 3,
        cooldown_seconds: float = 3601,
        max_cooldowns: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.page_retry = RetryConfig(
            max_attempts=page_retry_attempts,
            base_delay=page_retry_delay,
            max_delay=page_retry_delay,
            exponential_base=1.0,
            jitter=False,
            retry_exceptions=(ThrottledError,),
        )
        self.cooldown_seconds = cooldown_seconds
        self.max_cooldowns = max_cooldowns
        self._sleep = sleep
        self._lock = threading.Lock()
        self.page_retries = 0
        self.cooldowns = 0

    def _count_page_retry(self, attempt: int, exc: Exception, delay: float) -> None:
        with self._lock:
            self.page_retries += 1
        logger.info("Throttled on %s, retrying in %.0fs (attempt %d)", exc.url, delay, attempt)

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """
        Run func, replaying it in place while it raises ThrottledError.

        Waits the fixed page delay or the upstream Retry-After, whichever
        is longer.
        """
        return retry_call(
            func,
            *args,
            config=self.page_retry,
            on_retry=self._count_page_retry,
            sleep=self._sleep,
            min_delay_for=_retry_after,
            **kwargs,
        )

    def assess_batch(self, throttled: bool, cooldowns_so_far: int) -> BatchVerdict:
        if not throttled:
            return BatchVerdict.PROCEED
        if cooldowns_so_far >= self.max_cooldowns:
            return BatchVerdict.GIVE_UP
        return BatchVerdict.COOL_DOWN

    def cool_down(self, label: str) -> None:
        """Block for the batch cooldown."""
        with self._lock:
            self.cooldowns += 1
        logger.warning(
            "Rate limit hit during %s; cooling down for %.0fs before replaying the batch",
            label,
            self.cooldown_seconds,
        )
        self._sleep(self.cooldown_seconds)
