"""
Rolling-window request limiter for the upstream client.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Allows at most ``max_requests`` acquisitions per rolling ``window``.

    Acquisitions are serialised through a lock; when the window is full the
    caller sleeps until the oldest acquisition ages out. Requests are never
    dropped.
    """

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window <= 0:
            raise ValueError("window must be positive")

        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window:
            self._calls.popleft()

    @property
    def in_window(self) -> int:
        """Number of acquisitions in the current window."""
        self._evict(self._clock())
        return len(self._calls)

    async def acquire(self) -> None:
        """Wait for a free slot and take it."""
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._calls) < self.max_requests:
                    self._calls.append(now)
                    return

                delay = self.window - (now - self._calls[0])
                logger.debug(f"Rate limit reached, waiting {delay:.3f}s")
                await self._sleep(delay)

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None
