"""Bounded retry policy for per-key gateway lookups."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

Backoff = Callable[[int], float]


def linear_backoff(base_seconds: float) -> Backoff:
    """Wait ``base_seconds * attempt`` after each failed attempt."""

    def _delay(attempt: int) -> float:
        return base_seconds * attempt

    return _delay


def no_backoff(attempt: int) -> float:
    return 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try a fetch and how long to wait in between.

    ``backoff(attempt)`` is the delay after failed attempt ``attempt``
    (1-based); no delay follows the final attempt.
    """

    max_attempts: int = 3
    backoff: Backoff = field(default=linear_backoff(1.0))
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def single_attempt(cls) -> "RetryPolicy":
        return cls(max_attempts=1, backoff=no_backoff)

    @classmethod
    def immediate(cls, max_attempts: int = 3) -> "RetryPolicy":
        """Retries without sleeping; used by tests."""
        return cls(max_attempts=max_attempts, backoff=no_backoff)

    async def wait(self, attempt: int) -> None:
        delay = self.backoff(attempt)
        if delay > 0:
            await self.sleep(delay)
