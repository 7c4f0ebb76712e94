"""Bounded exponential backoff for transient remote failures."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """How many times to try, and how long to wait in between."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.backoff_max, self.backoff_base * (2 ** (attempt - 1)))


def call_with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    is_transient: Callable[[Exception], bool],
    describe: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    cancel: threading.Event | None = None,
) -> T:
    """Call ``fn`` until it succeeds, a permanent error occurs, or attempts run out.

    The last error is re-raised when giving up.
    """
    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:
            if not is_transient(e) or attempt >= policy.max_attempts:
                raise
            if cancel is not None and cancel.is_set():
                raise
            delay = policy.delay(attempt)
            logger.warning(
                f"{describe} failed (attempt {attempt}/{policy.max_attempts}): {e}. "
                f"Retrying in {delay:.1f}s"
            )
            sleep(delay)
            attempt += 1
