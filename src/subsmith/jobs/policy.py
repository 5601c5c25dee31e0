"""Retry policy for failed job attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_BACKOFF_BASE = 10.0


def exponential_backoff(base: float = DEFAULT_BACKOFF_BASE) -> Callable[[int], float]:
    """Delay in seconds after the n-th failed attempt: base, 2*base, 4*base, ..."""

    def backoff(attempt: int) -> float:
        return base * 2 ** max(attempt - 1, 0)

    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a job may run and how long to wait between runs.

    Attributes:
        max_attempts: Total attempts including the first one.
        backoff: Maps the number of the attempt that just failed to a delay.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)

    def should_retry(self, attempts: int) -> bool:
        return attempts < self.max_attempts

    def delay(self, attempts: int) -> float:
        return self.backoff(attempts)
