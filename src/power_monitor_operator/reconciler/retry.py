"""Bounded retry helpers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..services.store import ConflictError
from .result import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFLICT_RETRY_ATTEMPTS = 5


def retry_with_timeout(
    operation: Callable[[], T],
    timeout: float,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Call ``operation`` until it returns without raising or ``timeout`` elapses.

    The first attempt happens immediately.

    Raises:
        PollTimeoutError: Wrapping the last failure once the deadline passes
    """
    deadline = clock() + timeout
    while True:
        try:
            return operation()
        except Exception as e:
            if clock() + interval >= deadline:
                raise PollTimeoutError(f"timeout after {timeout:g}s: {e}") from e
            logger.debug(f"condition not met yet, retrying in {interval:g}s: {e}")
            sleep(interval)


def retry_on_conflict(
    operation: Callable[[], T],
    attempts: int = CONFLICT_RETRY_ATTEMPTS,
    min_wait: float = 0.01,
    max_wait: float = 1.0,
) -> T:
    """Re-run ``operation`` while it fails with a write conflict.

    The whole operation is repeated, so it must re-read whatever it writes.
    The last ConflictError propagates once attempts are exhausted.
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(ConflictError),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )
    return retrying(operation)


@dataclass(frozen=True)
class Poller:
    """Poll-with-timeout policy for waiting on prerequisites."""

    timeout: float
    interval: float

    def __call__(self, operation: Callable[[], T]) -> T:
        return retry_with_timeout(operation, timeout=self.timeout, interval=self.interval)
