"""Tests for the bounded retry helpers."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from power_monitor_operator.reconciler import PollTimeoutError
from power_monitor_operator.reconciler.retry import retry_on_conflict, retry_with_timeout
from power_monitor_operator.services.store import ConflictError, NotFoundError


class FakeClock:
    """Monotonic clock advanced only by sleeping."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _failing(times: int, error: Exception, value: str = "ok"):
    calls = {"n": 0}

    def operation() -> str:
        calls["n"] += 1
        if calls["n"] <= times:
            raise error
        return value

    return operation, calls


class TestRetryWithTimeout:
    """Test cases for retry_with_timeout."""

    def test_first_attempt_succeeds(self):
        """Test that a passing operation is not retried."""
        clock = FakeClock()

        assert retry_with_timeout(lambda: 1, timeout=10, interval=3, sleep=clock.sleep, clock=clock) == 1
        assert clock.sleeps == []

    def test_retries_until_success(self):
        """Test that failures are retried at the interval."""
        clock = FakeClock()
        operation, calls = _failing(2, NotFoundError("missing"))

        assert retry_with_timeout(operation, timeout=10, interval=3, sleep=clock.sleep, clock=clock) == "ok"
        assert calls["n"] == 3
        assert clock.sleeps == [3, 3]

    def test_times_out(self):
        """Test that the last failure is wrapped once the deadline passes."""
        clock = FakeClock()
        operation, calls = _failing(100, NotFoundError("missing"))

        with pytest.raises(PollTimeoutError, match="missing") as exc_info:
            retry_with_timeout(operation, timeout=10, interval=3, sleep=clock.sleep, clock=clock)

        assert isinstance(exc_info.value.__cause__, NotFoundError)
        assert calls["n"] == 4

    def test_zero_timeout_is_single_attempt(self):
        """Test that a zero timeout tries exactly once."""
        clock = FakeClock()
        operation, calls = _failing(1, NotFoundError("missing"))

        with pytest.raises(PollTimeoutError):
            retry_with_timeout(operation, timeout=0, interval=0, sleep=clock.sleep, clock=clock)

        assert calls["n"] == 1


class TestRetryOnConflict:
    """Test cases for retry_on_conflict."""

    def test_retries_conflicts(self):
        """Test that write conflicts re-run the whole operation."""
        operation, calls = _failing(2, ConflictError("stale"))

        assert retry_on_conflict(operation, min_wait=0, max_wait=0) == "ok"
        assert calls["n"] == 3

    def test_gives_up(self):
        """Test that the last conflict propagates after the attempts run out."""
        operation, calls = _failing(10, ConflictError("stale"))

        with pytest.raises(ConflictError):
            retry_on_conflict(operation, attempts=3, min_wait=0, max_wait=0)

        assert calls["n"] == 3

    def test_other_errors_are_not_retried(self):
        """Test that only conflicts are retried."""
        operation = MagicMock(side_effect=NotFoundError("gone"))

        with pytest.raises(NotFoundError):
            retry_on_conflict(operation, min_wait=0, max_wait=0)

        operation.assert_called_once()
