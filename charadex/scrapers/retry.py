"""
Exponential-backoff retry for source requests.

Only transient failures are retried: connection resets, timeouts, DNS
failures, HTTP 429 and HTTP 5xx. Anything else propagates on the first
attempt. When attempts run out the last error is re-raised as-is.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import requests

from .errors import SourceHTTPError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryObserver = Callable[[BaseException, int, float], None]

_NETWORK_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    ConnectionResetError,
    TimeoutError,
    socket.gaierror,
)


def _status_of(error: BaseException) -> Optional[int]:
    if isinstance(error, SourceHTTPError):
        return error.status_code
    if isinstance(error, requests.HTTPError) and error.response is not None:
        return error.response.status_code
    return None


def is_retryable(error: BaseException) -> bool:
    """True for transient network errors, HTTP 429 and HTTP 5xx."""
    if isinstance(error, _NETWORK_ERRORS):
        return True
    status = _status_of(error)
    if status is None:
        return False
    return status == 429 or status >= 500


@dataclass
class RetryPolicy:
    """Retry an async callable with exponential backoff.

    The wait after failed attempt k (1-indexed) is
    ``base_delay * backoff_multiplier ** (k - 1)``, so the first retry
    waits ``base_delay``. Nothing waits after the final attempt.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    on_retry: Optional[RetryObserver] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def delay_for(self, failed_attempt: int) -> float:
        """Seconds to wait after ``failed_attempt`` (1-indexed) failed."""
        return self.base_delay * (self.backoff_multiplier ** (failed_attempt - 1))

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await fn()
            except Exception as error:
                if not is_retryable(error) or attempt >= self.max_attempts:
                    raise

                delay = self.delay_for(attempt)
                retry_after = getattr(error, "retry_after", None)
                if retry_after:
                    delay = max(delay, float(retry_after))
                self._notify(error, attempt, delay)
                await self.sleep(delay)
                attempt += 1

    def _notify(self, error: BaseException, attempt: int, delay: float) -> None:
        if self.on_retry is None:
            return
        try:
            self.on_retry(error, attempt, delay)
        except Exception as hook_error:
            # An observer must not be able to cancel the retry
            logger.warning(f"on_retry hook raised {hook_error!r}; continuing retry")


def log_retry(label: str) -> RetryObserver:
    """Build an ``on_retry`` observer that logs a warning for ``label``."""

    def _observer(error: BaseException, attempt: int, delay: float) -> None:
        logger.warning(
            f"{label}: retry {attempt} after error: {error} (waiting {delay:.1f}s)"
        )

    return _observer
