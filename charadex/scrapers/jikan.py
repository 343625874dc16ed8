"""
Jikan (unofficial MyAnimeList REST API) client.

Jikan returns a work's whole character list in one response, so
``collect_characters`` makes a single request and reshapes the result
into AniList-style ``{role, node}`` edges for the normalizer.
"""

import logging
from datetime import date
from typing import Optional

from ..db.models import QueueEntry
from ..enums import Source, WorkType
from .base import DiscoveryPage, ProgressCallback, SearchCriteria, SourceClient
from .errors import WorkNotFoundError
from .rate_limiter import per_second
from .retry import RetryPolicy, log_retry

logger = logging.getLogger(__name__)

JIKAN_API_URL = "https://api.jikan.moe/v4"

DEFAULT_CHARACTER_LIMIT = 100


def _birthday_parts(birthday: Optional[str]) -> Optional[dict]:
    if not birthday:
        return None
    try:
        born = date.fromisoformat(birthday[:10])
    except ValueError:
        return None
    return {"year": born.year, "month": born.month, "day": born.day}


def to_edge(entry: dict) -> dict:
    """Reshape one Jikan ``/anime/{id}/characters`` item into an edge."""
    character = entry.get("character") or {}
    birthday = _birthday_parts(character.get("birthday"))
    return {
        "role": (entry.get("role") or "").upper(),
        "node": {
            "id": character.get("mal_id"),
            "name": {
                "full": character.get("name"),
                "native": character.get("name"),
                "alternative": character.get("nicknames") or [],
            },
            "image": {"large": ((character.get("images") or {}).get("jpg") or {}).get("image_url")},
            "description": character.get("about") or "",
            "gender": character.get("gender"),
            "age": date.today().year - birthday["year"] if birthday else None,
            "dateOfBirth": birthday,
        },
        "voiceActors": [
            {
                "id": (va.get("person") or {}).get("mal_id"),
                "name": {"full": (va.get("person") or {}).get("name")},
                "language": va.get("language"),
            }
            for va in entry.get("voice_actors") or []
        ],
    }


class JikanClient(SourceClient):
    """MyAnimeList data through Jikan. Anime only."""

    source = Source.JIKAN
    display_name = "Jikan"

    def __init__(self, requests_per_second: int = 1, **kwargs):
        kwargs.setdefault("rate_limiter", per_second(requests_per_second))
        kwargs.setdefault(
            "retry_policy",
            RetryPolicy(max_attempts=5, base_delay=2.0, on_retry=log_retry(self.display_name)),
        )
        super().__init__(**kwargs)

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        return await self._request("GET", f"{JIKAN_API_URL}{endpoint}", params=clean)

    async def search_media(self, criteria: SearchCriteria) -> dict:
        if criteria.id is not None:
            data = await self.get(f"/anime/{criteria.id}")
            if not data.get("data"):
                raise WorkNotFoundError(f"Jikan: no anime {criteria.id}", source=self.source)
            return data["data"]

        results = (await self.get("/anime", {"q": criteria.search, "limit": 1})).get("data") or []
        if not results:
            raise WorkNotFoundError(f"Jikan: no anime matching '{criteria.search}'", source=self.source)
        return results[0]

    async def collect_characters(
        self,
        source_id: str | int,
        limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[dict]:
        data = await self.get(f"/anime/{source_id}/characters")
        items = (data.get("data") or [])[: limit or DEFAULT_CHARACTER_LIMIT]
        edges = [to_edge(item) for item in items]
        if on_progress:
            on_progress({"page": 1, "total": len(data.get("data") or []), "collected": len(edges)})
        logger.info(f"Jikan: collected {len(edges)} characters for anime {source_id}")
        return edges

    async def search_multiple_media(
        self, search: str, work_type: Optional[WorkType] = None, limit: int = 10
    ) -> list[dict]:
        return (await self.get("/anime", {"q": search, "limit": limit})).get("data") or []

    async def discover_popular(self, work_type: WorkType, page: int = 1, per_page: int = 20) -> DiscoveryPage:
        if work_type != WorkType.ANIME:
            raise ValueError(f"Jikan discovery only covers anime, not '{work_type}'")

        data = await self.get("/top/anime", {"page": page, "limit": per_page})
        entries = [
            QueueEntry(
                id=a["mal_id"],
                title=a.get("title") or "",
                type=str(work_type),
                popularity=a.get("members"),
                score=a.get("score"),
                episodes=a.get("episodes"),
                status=a.get("status"),
            )
            for a in data.get("data") or []
        ]
        return DiscoveryPage(
            entries=entries,
            has_next_page=bool((data.get("pagination") or {}).get("has_next_page")),
        )
