"""
Common base for the external catalog clients.

Each client owns one ``RateLimiter`` and one ``RetryPolicy``. Every HTTP
attempt first acquires a rate-limit slot, then runs the blocking
``requests`` call in the default executor so the event loop stays
cooperative. Non-2xx responses become ``SourceHTTPError`` (carrying
``Retry-After`` when the server sends one) and bodies that are not JSON
become ``MalformedResponseError``.
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import requests

from ..db.models import QueueEntry
from ..enums import Source, WorkType
from .errors import MalformedResponseError, SourceHTTPError
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, log_retry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict], None]

DEFAULT_TIMEOUT = 30.0


@dataclass
class SearchCriteria:
    """How to find one work at a source: by id, slug or free-text search."""
    id: Optional[str | int] = None
    search: Optional[str] = None
    slug: Optional[str] = None
    type: Optional[WorkType] = None

    def describe(self) -> str:
        return str(self.id or self.slug or self.search or "?")


@dataclass
class DiscoveryPage:
    """One page of "popular" candidates returned by ``discover_popular``."""
    entries: list[QueueEntry] = field(default_factory=list)
    has_next_page: bool = False


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form; fall back to the policy's own backoff
        return None


class SourceClient(ABC):
    """Capability interface implemented once per external catalog."""

    source: Source
    display_name: str = ""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy or RetryPolicy(on_retry=log_retry(self.display_name))
        self.timeout = timeout
        self._sleep = sleep or asyncio.sleep
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    # ─── HTTP ────────────────────────────────────────────────────────────

    def _send(self, method: str, url: str, **kwargs) -> Any:
        """Blocking request; runs inside the executor."""
        response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        if not response.ok:
            raise SourceHTTPError(
                response.status_code,
                f"{self.display_name} API error: {response.status_code}",
                source=self.source,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.display_name} returned a non-JSON body: {e}", source=self.source
            ) from e

    async def _before_request(self) -> None:
        """Hook run after the rate-limit slot is granted, before each attempt."""

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        async def attempt():
            await self.rate_limiter.acquire()
            await self._before_request()
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None, functools.partial(self._send, method, url, **kwargs)
            )

        return await self.retry_policy.run(attempt)

    # ─── Capabilities ────────────────────────────────────────────────────

    @abstractmethod
    async def search_media(self, criteria: SearchCriteria) -> dict:
        """Fetch one raw work record. Raises ``WorkNotFoundError`` when nothing matches."""

    @abstractmethod
    async def collect_characters(
        self,
        source_id: str | int,
        limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[dict]:
        """Fetch raw character records for a work, applying the source's pagination."""

    @abstractmethod
    async def search_multiple_media(
        self, search: str, work_type: Optional[WorkType] = None, limit: int = 10
    ) -> list[dict]:
        """Raw records of up to ``limit`` works matching ``search``, for picking an id."""

    @abstractmethod
    async def discover_popular(self, work_type: WorkType, page: int = 1, per_page: int = 20) -> DiscoveryPage:
        """One page of popular works of ``work_type``, most popular first."""

    def close(self) -> None:
        self._session.close()
