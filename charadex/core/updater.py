"""Re-fetch stored works from the source they were imported from."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ..db.store import CatalogStore
from ..enums import Source, WorkType
from ..scrapers import registry
from ..scrapers.base import SearchCriteria, SourceClient
from ..scrapers.errors import WorkNotFoundError

logger = logging.getLogger(__name__)


class UpdateWorkJob:
    """Refresh works already in the store, keeping their stored ids."""

    def __init__(
        self,
        store: CatalogStore,
        update_characters: bool = True,
        client_factory: Callable[[Source], SourceClient] = registry.create_client,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.update_characters = update_characters
        self._client_factory = client_factory
        self._clients: dict[Source, SourceClient] = {}
        self._sleep = sleep

    @classmethod
    def for_data_dir(cls, data_dir: Path | str, **kwargs) -> "UpdateWorkJob":
        return cls(CatalogStore(data_dir), **kwargs)

    def _client(self, source: Source) -> SourceClient:
        # One client per source so its rate limiter spans the whole run
        if source not in self._clients:
            self._clients[source] = self._client_factory(source)
        return self._clients[source]

    async def update_work(self, work_type: str, work_id: str) -> dict[str, Any]:
        existing = self.store.get_work(work_type, work_id)
        if existing is None:
            raise WorkNotFoundError(f"No stored work {work_type}/{work_id}")

        source = Source.parse(existing.get("source") or registry.resolve_source(work_type))
        client = self._client(source)
        normalizer = registry.get_normalizer(source)

        criteria = SearchCriteria(
            id=existing.get("source_id"),
            slug=(existing.get("external_ids") or {}).get("rawg_slug"),
            type=WorkType(work_type),
        )
        raw_work = await client.search_media(criteria)
        raw_characters = (
            await client.collect_characters(existing.get("source_id"))
            if self.update_characters else None
        )

        work = normalizer.normalize_work(raw_work)
        # The stored id stays authoritative even if the source title changed
        data = work.model_dump(mode="json", exclude_none=True)
        data["id"] = work_id
        updated = self.store.upsert_work(work_type, work_id, data)

        characters_result = None
        if raw_characters:
            characters = normalizer.normalize_characters(raw_characters, work_id)
            characters_result = self.store.upsert_characters(work_type, work_id, characters)

        return {"work": updated, "characters": characters_result}

    async def update_all(self, delay_between: float = 0) -> dict[str, Any]:
        works = list(self.store.list_works())
        logger.info(f"Found {len(works)} works to update")

        report: dict[str, Any] = {"total": len(works), "updated": 0, "errors": 0, "details": []}
        for work_type, work_id in works:
            logger.info(f"Updating {work_type}/{work_id}...")
            try:
                result = await self.update_work(work_type, work_id)
                report["updated"] += 1
                report["details"].append({
                    "type": work_type,
                    "work_id": work_id,
                    "success": True,
                    "characters": (result["characters"] or {}).get("total", 0),
                })
            except Exception as e:
                logger.error(f"Update of {work_type}/{work_id} failed: {e}")
                report["errors"] += 1
                report["details"].append({
                    "type": work_type, "work_id": work_id, "success": False, "error": str(e),
                })

            if delay_between > 0:
                await self._sleep(delay_between)

        logger.info(f"Update finished: {report['updated']} updated, {report['errors']} errors")
        return report
