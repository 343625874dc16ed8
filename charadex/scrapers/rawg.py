"""
RAWG Video Games Database client.

RAWG needs a free API key (https://rawg.io/apidocs), sent as the ``key``
query parameter. It has no fictional-character endpoint, so
``collect_characters`` returns the development team plus the game's
credited creators.
"""

import logging
from typing import Optional

from ..db.models import QueueEntry
from ..enums import Source, WorkType
from .base import DiscoveryPage, ProgressCallback, SearchCriteria, SourceClient
from .errors import WorkNotFoundError
from .rate_limiter import per_minute
from .retry import RetryPolicy, log_retry

logger = logging.getLogger(__name__)

RAWG_API_URL = "https://api.rawg.io/api"

DEFAULT_CHARACTER_LIMIT = 50
SEARCH_PAGE_SIZE = 5


class RawgClient(SourceClient):
    """Games from RAWG."""

    source = Source.RAWG
    display_name = "RAWG"

    def __init__(self, api_key: str = "", requests_per_minute: int = 20, **kwargs):
        kwargs.setdefault("rate_limiter", per_minute(requests_per_minute))
        kwargs.setdefault(
            "retry_policy",
            RetryPolicy(max_attempts=5, base_delay=2.0, on_retry=log_retry(self.display_name)),
        )
        super().__init__(**kwargs)
        self.api_key = api_key
        if not api_key:
            logger.warning("RAWG_API_KEY is not set; requests will be rejected. Get one at https://rawg.io/apidocs")

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        clean["key"] = self.api_key
        return await self._request("GET", f"{RAWG_API_URL}{endpoint}", params=clean)

    async def search_media(self, criteria: SearchCriteria) -> dict:
        identifier = criteria.id or criteria.slug
        if identifier:
            return await self.get(f"/games/{identifier}")

        if not criteria.search:
            raise ValueError("Give a name, id or slug to look up a game")

        results = (await self.get("/games", {"search": criteria.search, "page_size": SEARCH_PAGE_SIZE})).get("results") or []
        if not results:
            raise WorkNotFoundError(f"RAWG: no game matching '{criteria.search}'", source=self.source)
        # Search hits are abbreviated; fetch the full record of the top one
        return await self.get(f"/games/{results[0]['id']}")

    async def collect_characters(
        self,
        source_id: str | int,
        limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[dict]:
        """Development team members, then creators not already listed."""
        limit = limit or DEFAULT_CHARACTER_LIMIT
        details = await self.get(f"/games/{source_id}")
        team = await self.get(f"/games/{source_id}/development-team", {"page_size": limit})

        members = list((team.get("results") or [])[:limit])
        seen = {m.get("id") for m in members}
        for creator in details.get("creators") or []:
            if creator.get("id") not in seen:
                members.append({**creator, "role": creator.get("role") or "creator"})
                seen.add(creator.get("id"))

        if on_progress:
            on_progress({"page": 1, "total": team.get("count"), "collected": len(members)})
        logger.info(f"RAWG: collected {len(members)} creators for game {source_id}")
        return members

    async def search_multiple_media(
        self, search: str, work_type: Optional[WorkType] = None, limit: int = 10
    ) -> list[dict]:
        return (await self.get("/games", {"search": search, "page_size": limit})).get("results") or []

    async def discover_popular(self, work_type: WorkType, page: int = 1, per_page: int = 20) -> DiscoveryPage:
        if work_type != WorkType.GAME:
            raise ValueError(f"RAWG only catalogs games, not '{work_type}'")

        data = await self.get("/games", {"ordering": "-rating,-metacritic", "page": page, "page_size": per_page})
        entries = [
            QueueEntry(
                id=g["id"],
                title=g.get("name") or "",
                type=str(work_type),
                popularity=g.get("ratings_count"),
                score=g.get("rating"),
                rating=g.get("rating"),
                metacritic=g.get("metacritic"),
                released=g.get("released"),
                platforms=[p["platform"]["name"] for p in g.get("platforms") or [] if (p.get("platform") or {}).get("name")],
            )
            for g in data.get("results") or []
        ]
        return DiscoveryPage(entries=entries, has_next_page=bool(data.get("next")))
