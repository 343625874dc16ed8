"""
AniList GraphQL client.

Besides the shared sliding-window limiter, AniList gets a fixed minimum
gap between requests (2 s, or 12 s in safe mode); its public budget is
easy to exhaust when paging through large character lists. Character
pages can optionally use a "smart delay" that grows with the work's
total character count.

AniList API docs: https://anilist.gitbook.io/anilist-apiv2-docs/
"""

import logging
import math
import time
from typing import Any, Callable, Optional

from ..db.models import QueueEntry
from ..enums import Source, WorkType
from .base import DiscoveryPage, ProgressCallback, SearchCriteria, SourceClient
from .errors import MalformedResponseError, WorkNotFoundError
from .rate_limiter import per_minute
from .retry import RetryPolicy, log_retry

logger = logging.getLogger(__name__)


# ─── GraphQL Queries ─────────────────────────────────────────────────────────

MEDIA_QUERY = """
query ($id: Int, $search: String, $type: MediaType) {
  Media(id: $id, search: $search, type: $type) {
    id
    title { romaji english native }
    type
    format
    description(asHtml: false)
    startDate { year month day }
    endDate { year month day }
    episodes
    chapters
    volumes
    status
    coverImage { large medium }
    bannerImage
    genres
    tags { name rank }
    averageScore
    popularity
    siteUrl
  }
}
"""

CHARACTERS_QUERY = """
query ($mediaId: Int, $page: Int, $perPage: Int) {
  Media(id: $mediaId) {
    characters(page: $page, perPage: $perPage, sort: [ROLE, RELEVANCE, ID]) {
      pageInfo { hasNextPage currentPage lastPage total }
      edges {
        role
        node {
          id
          name { full native alternative }
          image { large medium }
          description(asHtml: false)
          gender
          age
          dateOfBirth { year month day }
          siteUrl
        }
      }
    }
  }
}
"""

SEARCH_MULTIPLE_QUERY = """
query ($search: String, $type: MediaType, $perPage: Int) {
  Page(perPage: $perPage) {
    media(search: $search, type: $type, sort: POPULARITY_DESC) {
      id
      title { romaji english native }
      type
      format
      startDate { year }
      coverImage { medium }
      popularity
    }
  }
}
"""

POPULAR_QUERY = """
query ($page: Int, $perPage: Int, $type: MediaType) {
  Page(page: $page, perPage: $perPage) {
    media(type: $type, sort: POPULARITY_DESC) {
      id
      title { romaji english }
      popularity
      averageScore
      episodes
      status
    }
    pageInfo { hasNextPage currentPage }
  }
}
"""


# ─── Client ──────────────────────────────────────────────────────────────────

ANILIST_API_URL = "https://graphql.anilist.co"

MIN_REQUEST_GAP = 2.0
SAFE_MODE_REQUEST_GAP = 12.0
SAFE_MODE_REQUESTS_PER_MINUTE = 5

CHARACTERS_PER_PAGE = 25


class AniListClient(SourceClient):
    """Async-compatible AniList GraphQL client."""

    source = Source.ANILIST
    display_name = "AniList"

    def __init__(
        self,
        requests_per_minute: int = 10,
        safe_mode: bool = False,
        delay_between_pages: float = 1.0,
        smart_delay: bool = False,
        base_delay: float = 1.0,
        delay_multiplier: float = 0.5,
        max_delay: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        **kwargs,
    ):
        budget = SAFE_MODE_REQUESTS_PER_MINUTE if safe_mode else requests_per_minute
        kwargs.setdefault("rate_limiter", per_minute(budget))
        kwargs.setdefault(
            "retry_policy",
            RetryPolicy(max_attempts=3, base_delay=2.0, on_retry=log_retry(self.display_name)),
        )
        super().__init__(**kwargs)
        self._session.headers.update({"Content-Type": "application/json"})

        self.safe_mode = safe_mode
        self.min_request_gap = SAFE_MODE_REQUEST_GAP if safe_mode else MIN_REQUEST_GAP
        self.delay_between_pages = delay_between_pages
        self.smart_delay = smart_delay
        self.base_delay = base_delay
        self.delay_multiplier = delay_multiplier
        self.max_delay = max_delay
        self._clock = clock
        self._last_request: Optional[float] = None

    async def _before_request(self) -> None:
        if self._last_request is not None:
            elapsed = self._clock() - self._last_request
            if elapsed < self.min_request_gap:
                wait = self.min_request_gap - elapsed
                logger.debug(
                    f"AniList: waiting {wait:.1f}s (minimum gap between requests"
                    f"{' - safe mode' if self.safe_mode else ''})"
                )
                await self._sleep(wait)
        self._last_request = self._clock()

    async def query(self, query: str, variables: Optional[dict] = None) -> dict:
        """Execute a GraphQL query and return its ``data`` object."""
        payload = await self._request(
            "POST", ANILIST_API_URL, json={"query": query, "variables": variables or {}}
        )
        if payload.get("errors"):
            raise MalformedResponseError(f"GraphQL errors: {payload['errors']}", source=self.source)
        return payload.get("data") or {}

    def smart_page_delay(self, total_characters: int) -> float:
        """Per-page delay scaled by the work's size, capped at ``max_delay``."""
        # Rounded down to whole milliseconds
        scaled = self.base_delay + math.floor(total_characters / 100 * self.delay_multiplier * 1000) / 1000
        return min(self.max_delay, scaled)

    async def search_media(self, criteria: SearchCriteria) -> dict:
        variables = {
            "id": int(criteria.id) if criteria.id is not None else None,
            "search": criteria.search,
            "type": str(criteria.type).upper() if criteria.type else None,
        }
        data = await self.query(MEDIA_QUERY, variables)
        media = data.get("Media")
        if not media:
            raise WorkNotFoundError(f"AniList: no media for {criteria.describe()}", source=self.source)
        return media

    async def collect_characters(
        self,
        source_id: str | int,
        limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[dict]:
        """Page through a media's character edges (``{role, node}``)."""
        edges: list[dict[str, Any]] = []
        page = 1
        page_delay = self.delay_between_pages

        while True:
            logger.debug(f"AniList: collecting character page {page} of media {source_id}")
            data = await self.query(
                CHARACTERS_QUERY,
                {"mediaId": int(source_id), "page": page, "perPage": CHARACTERS_PER_PAGE},
            )
            characters = (data.get("Media") or {}).get("characters")
            if characters is None:
                raise WorkNotFoundError(f"AniList: no media {source_id}", source=self.source)

            page_info = characters.get("pageInfo") or {}
            edges.extend(characters.get("edges") or [])

            if page == 1 and self.smart_delay:
                total = page_info.get("total") or 0
                page_delay = self.smart_page_delay(total)
                logger.info(f"AniList: smart delay on, {total} characters, {page_delay:.1f}s per page")

            if on_progress:
                on_progress({
                    "page": page_info.get("currentPage", page),
                    "total": page_info.get("total"),
                    "collected": len(edges),
                })

            if limit is not None and len(edges) >= limit:
                edges = edges[:limit]
                break
            if not page_info.get("hasNextPage"):
                break

            page += 1
            await self._sleep(page_delay)

        logger.info(f"AniList: collected {len(edges)} characters for media {source_id}")
        return edges

    async def search_multiple_media(
        self, search: str, work_type: Optional[WorkType] = None, limit: int = 10
    ) -> list[dict]:
        data = await self.query(
            SEARCH_MULTIPLE_QUERY,
            {"search": search, "type": str(work_type).upper() if work_type else None, "perPage": limit},
        )
        return (data.get("Page") or {}).get("media") or []

    async def discover_popular(self, work_type: WorkType, page: int = 1, per_page: int = 20) -> DiscoveryPage:
        if work_type not in (WorkType.ANIME, WorkType.MANGA):
            raise ValueError(f"AniList has no '{work_type}' catalog")

        data = await self.query(
            POPULAR_QUERY, {"page": page, "perPage": per_page, "type": str(work_type).upper()}
        )
        page_data = data.get("Page") or {}
        entries = [
            QueueEntry(
                id=m["id"],
                title=(m.get("title") or {}).get("romaji") or (m.get("title") or {}).get("english") or "",
                type=str(work_type),
                popularity=m.get("popularity"),
                score=m.get("averageScore"),
                episodes=m.get("episodes"),
                status=m.get("status"),
            )
            for m in page_data.get("media") or []
        ]
        return DiscoveryPage(
            entries=entries,
            has_next_page=bool((page_data.get("pageInfo") or {}).get("hasNextPage")),
        )
