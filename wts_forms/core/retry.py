"""Retry with jittered exponential backoff.

Used as the inner operation of a circuit breaker: the breaker sees one
exhausted retry sequence as a single failure.

Delays (base_delay=1s): 1s, 2s, 4s ... plus up to ``max_jitter`` seconds of
uniform jitter so many clients recovering at once do not retry in lockstep.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryWithBackoff:
    """Stateless retry wrapper: ``max_retries`` extra attempts after the first."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_jitter: float = 1.0

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay after failed attempt ``attempt`` (0-indexed), jitter included."""
        return self.base_delay * (2**attempt) + random.random() * self.max_jitter

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds or retries run out.

        Raises:
            Exception: the last error once every attempt has failed.
        """
        for attempt in range(self.max_retries):
            try:
                return await operation()
            except Exception as exc:
                wait = self.delay_for_attempt(attempt)
                logger.warning(
                    "Attempt failed, retrying",
                    attempt=attempt + 1,
                    retry_in_seconds=round(wait, 3),
                    error=str(exc),
                )
                await asyncio.sleep(wait)

        # Final attempt: its error propagates unchanged
        return await operation()
