"""
Sliding-window rate limiter for outbound source requests.

Keeps a rolling log of admitted request timestamps. A caller is admitted
once fewer than ``max_requests`` timestamps remain inside the window;
otherwise it sleeps until the oldest one leaves the window and checks
again. Single-process only.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Admit at most ``max_requests`` per rolling ``window`` seconds."""

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window <= 0:
            raise ValueError("window must be positive")
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._timestamps: deque[float] = deque()
        self._lock: Optional[asyncio.Lock] = None
        self.total_wait = 0.0
        self.total_requests = 0

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Wait until the caller may proceed, then record the request."""
        # Lock is created lazily so it binds to the running loop.
        if self._lock is None:
            self._lock = asyncio.Lock()

        # asyncio.Lock wakes waiters in arrival order
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    break
                wait = self.window - (now - self._timestamps[0])
                if wait <= 0:
                    continue
                logger.debug(
                    f"RateLimiter: waiting {wait:.2f}s "
                    f"({len(self._timestamps)}/{self.max_requests} in window)"
                )
                self.total_wait += wait
                await self._sleep(wait)

            self._timestamps.append(self._clock())
            self.total_requests += 1

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once a slot is available."""
        await self.acquire()
        return await fn()

    @property
    def in_window(self) -> int:
        """Number of admitted requests still inside the window."""
        self._evict(self._clock())
        return len(self._timestamps)

    def stats(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "total_wait_seconds": round(self.total_wait, 1),
        }


def per_second(requests_per_second: int) -> RateLimiter:
    """Limiter with a one-second window."""
    return RateLimiter(requests_per_second, 1.0)


def per_minute(requests_per_minute: int) -> RateLimiter:
    """Limiter with a sixty-second window."""
    return RateLimiter(requests_per_minute, 60.0)
