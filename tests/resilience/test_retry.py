"""Tests for synchronous retry with backoff."""

from unittest.mock import MagicMock, patch

import pytest

from congress_mirror.resilience.retry import (
    RetryConfig,
    RetryStats,
    calculate_delay,
    retry_call,
    should_retry,
)


# ---------------------------------------------------------------------------
# calculate_delay
# ---------------------------------------------------------------------------


class TestCalculateDelay:
    def test_first_attempt(self):
        cfg = RetryConfig(base_delay=1.0, jitter=False)
        assert calculate_delay(1, cfg) == 1.0

    def test_exponential_growth(self):
        cfg = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)
        assert calculate_delay(2, cfg) == 2.0
        assert calculate_delay(3, cfg) == 4.0

    def test_capped_at_max_delay(self):
        cfg = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)
        assert calculate_delay(10, cfg) == 5.0

    def test_fixed_delay_with_base_one(self):
        cfg = RetryConfig(base_delay=5.0, exponential_base=1.0, jitter=False)
        assert [calculate_delay(n, cfg) for n in (1, 2, 3)] == [5.0, 5.0, 5.0]

    def test_jitter_stays_in_range(self):
        cfg = RetryConfig(base_delay=10.0, jitter=True, jitter_factor=0.1)
        with patch("congress_mirror.resilience.retry.random.uniform", return_value=-1.0):
            assert calculate_delay(1, cfg) == 9.0

    def test_never_negative(self):
        cfg = RetryConfig(base_delay=0.0, jitter=True)
        assert calculate_delay(1, cfg) == 0


# ---------------------------------------------------------------------------
# should_retry
# ---------------------------------------------------------------------------


class TestShouldRetry:
    def test_matching_exception(self):
        cfg = RetryConfig(retry_exceptions=(ConnectionError,))
        assert should_retry(ConnectionError("x"), cfg) is True

    def test_non_matching_exception(self):
        cfg = RetryConfig(retry_exceptions=(ConnectionError,))
        assert should_retry(ValueError("x"), cfg) is False


# ---------------------------------------------------------------------------
# retry_call
# ---------------------------------------------------------------------------


class TestRetryCall:
    def test_success_first_try(self):
        func = MagicMock(return_value="ok")
        sleep = MagicMock()
        stats = RetryStats()

        assert retry_call(func, "a", config=RetryConfig(), sleep=sleep, stats=stats, k=1) == "ok"
        func.assert_called_once_with("a", k=1)
        sleep.assert_not_called()
        assert stats.attempts == 1
        assert stats.success is True

    def test_retries_then_succeeds(self):
        func = MagicMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        sleep = MagicMock()
        on_retry = MagicMock()
        cfg = RetryConfig(max_attempts=3, base_delay=2.0, exponential_base=1.0, jitter=False)

        assert retry_call(func, config=cfg, sleep=sleep, on_retry=on_retry) == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 2.0]
        assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]

    def test_raises_after_exhaustion(self):
        func = MagicMock(side_effect=ConnectionError("down"))
        stats = RetryStats()
        cfg = RetryConfig(max_attempts=2, jitter=False)

        with pytest.raises(ConnectionError, match="down"):
            retry_call(func, config=cfg, sleep=MagicMock(), stats=stats)
        assert func.call_count == 2
        assert stats.success is False
        assert isinstance(stats.final_exception, ConnectionError)

    def test_non_retriable_raises_immediately(self):
        func = MagicMock(side_effect=ValueError("bad"))
        sleep = MagicMock()
        cfg = RetryConfig(retry_exceptions=(ConnectionError,))

        with pytest.raises(ValueError):
            retry_call(func, config=cfg, sleep=sleep)
        func.assert_called_once()
        sleep.assert_not_called()

    def test_total_delay_tracked(self):
        func = MagicMock(side_effect=[OSError(), "ok"])
        stats = RetryStats()
        cfg = RetryConfig(base_delay=3.0, jitter=False)

        retry_call(func, config=cfg, sleep=MagicMock(), stats=stats)
        assert stats.total_delay == 3.0

    def test_min_delay_for_stretches_delay(self):
        func = MagicMock(side_effect=[OSError(), OSError(), "ok"])
        sleep = MagicMock()
        cfg = RetryConfig(base_delay=2.0, exponential_base=1.0, jitter=False)
        hints = iter([10.0, None])

        retry_call(func, config=cfg, sleep=sleep, min_delay_for=lambda exc: next(hints))
        assert [c.args[0] for c in sleep.call_args_list] == [10.0, 2.0]
