"""
Retry policy for upstream calls.

One policy object (attempt ceiling, backoff, retry predicate) used for every
request the upstream client makes. Built on tenacity.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from gripp_mirror.config import Settings
from gripp_mirror.errors import RateLimitError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    Exponential backoff with jitter, capped at a maximum delay.

    Non-retryable errors abort immediately. A RateLimitError carrying a
    server-provided retry-after hint waits for that hint instead of the
    computed backoff (still capped at max_delay).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: float = 1.0,
        retry_predicate: Callable[[BaseException], bool] = is_retryable,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the retry policy.

        Args:
            max_attempts: Total attempts including the first call
            base_delay: Delay before the first retry in seconds
            max_delay: Upper bound for any single delay
            jitter: Maximum random seconds added to each backoff delay
            retry_predicate: Decides whether an exception is retryable
            sleep: Async sleep function (injectable for tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.retry_predicate = retry_predicate
        self._sleep = sleep or asyncio.sleep
        self._backoff = wait_exponential(multiplier=base_delay, max=max_delay) + wait_random(
            0, jitter
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Build the policy from application settings."""
        return cls(
            max_attempts=settings.upstream_max_attempts,
            base_delay=settings.upstream_retry_delay,
            max_delay=settings.upstream_retry_max_delay,
            jitter=settings.upstream_retry_jitter,
        )

    def compute_wait(self, retry_state: RetryCallState) -> float:
        """Delay before the next attempt."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            return min(max(exc.retry_after, 0.0), self.max_delay)
        return min(self._backoff(retry_state), self.max_delay)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.compute_wait,
            retry=retry_if_exception(self.retry_predicate),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run an async callable under this policy.

        Args:
            fn: Coroutine function to call
            *args: Positional arguments for fn
            **kwargs: Keyword arguments for fn

        Returns:
            Whatever fn returns on its first successful attempt

        Raises:
            The last exception when attempts run out or the error is not retryable
        """
        return await self._retrying()(fn, *args, **kwargs)
