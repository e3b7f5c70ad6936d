"""Retry/backoff controller for remote capability calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from pixeldirector.config import settings
from pixeldirector.errors import ErrorKind, PixelDirectorError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait in between.

    ``rate_limit_delay`` is the base used for rate-limited failures that do
    not say how long to wait; other retryable failures use ``base_delay``.
    Both double on every attempt.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    rate_limit_delay: float | None = None

    def delay_for(self, error: PixelDirectorError, attempt: int) -> float:
        """Seconds to wait after ``attempt`` (1-based) failed with ``error``."""
        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            return max(0.0, float(error.retry_after))
        base = self.base_delay
        if error.kind == ErrorKind.RATE_LIMITED and self.rate_limit_delay is not None:
            base = self.rate_limit_delay
        return base * (2 ** (attempt - 1))


GENERATION_POLICY = RetryPolicy(
    max_attempts=settings.generation_max_attempts,
    base_delay=settings.generation_base_delay_s,
)

SUBMISSION_POLICY = RetryPolicy(
    max_attempts=settings.submission_max_attempts,
    base_delay=settings.rate_limit_delay_s,
    rate_limit_delay=settings.rate_limit_delay_s,
)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    policy: RetryPolicy = GENERATION_POLICY,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds, fails permanently, or attempts run out.

    Only errors whose kind is transient or rate-limited are retried. The last
    error is re-raised with ``operation`` set to ``name``.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except PixelDirectorError as e:
            if not e.retryable or attempt == attempts:
                if e.operation is None:
                    e.operation = name
                if e.retryable:
                    logger.warning("%s: giving up after %d attempts: %s", name, attempt, e.message)
                raise
            delay = policy.delay_for(e, attempt)
            logger.warning(
                "%s: attempt %d/%d failed (%s), retrying in %.1fs",
                name,
                attempt,
                attempts,
                e.kind.value,
                delay,
            )
            await sleep(delay)
    raise AssertionError("unreachable")
