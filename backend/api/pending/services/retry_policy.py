"""Bounded retry with exponential backoff for Telegram relays."""

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from errors import BackendProtocolError, BackendTransportError
from logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, BackendTransportError):
        return True
    if isinstance(exc, BackendProtocolError):
        return exc.transient
    return False


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def backoff(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-indexed): 2s, 4s, ..."""
        return self.base**attempt

    def call(
        self,
        operation: Callable[[], T],
        on_failure: Callable[[int, Exception], None] | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds, fails permanently or runs out of attempts.

        ``on_failure(attempt, exc)`` is told about every failed attempt. The
        last error is re-raised.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except (BackendTransportError, BackendProtocolError) as exc:
                if on_failure:
                    on_failure(attempt, exc)
                if not is_retryable(exc) or attempt >= self.max_attempts:
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed: {exc.message}; "
                    f"retrying in {delay:.0f}s"
                )
                self.sleep(delay)
