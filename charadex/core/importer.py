"""
Import pipeline for a single work: SourceClient -> Normalizer -> Store.

Errors propagate to the caller; batch and crawl callers isolate them per
item.
"""

import asyncio
import logging
import time
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Optional

from ..db.store import CatalogStore
from ..enums import WorkType
from ..scrapers import registry
from ..scrapers.base import SearchCriteria, SourceClient

logger = logging.getLogger(__name__)


class ImportWorkJob:
    """Fetch a work and its characters from one source and merge them into the store."""

    def __init__(
        self,
        store: CatalogStore,
        client: SourceClient,
        normalizer: Optional[ModuleType] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.client = client
        self.normalizer = normalizer or registry.get_normalizer(client.source)
        self._sleep = sleep

    @classmethod
    def for_type(
        cls,
        data_dir: Path | str,
        work_type: WorkType | str,
        source: Optional[str] = None,
        **client_overrides,
    ) -> "ImportWorkJob":
        """Build a job for ``work_type`` using its default source unless one is given."""
        resolved = registry.resolve_source(work_type, source)
        return cls(CatalogStore(data_dir), registry.create_client(resolved, **client_overrides))

    async def import_work(
        self,
        criteria: SearchCriteria,
        skip_characters: bool = False,
        character_limit: Optional[int] = None,
    ) -> dict[str, Any]:
        """Import one work. Returns ``{success, work, characters, duration}``."""
        started = time.monotonic()
        logger.info(f"Importing {criteria.describe()} from {self.client.display_name}")

        raw_work = await self.client.search_media(criteria)
        work = self.normalizer.normalize_work(raw_work)
        logger.info(f"Found: {work.title}")
        self.store.upsert_work(work.type, work.id, work)

        character_stats = None
        if not skip_characters:
            raw_characters = await self.client.collect_characters(
                work.source_id,
                limit=character_limit,
                on_progress=lambda p: logger.debug(
                    f"Page {p.get('page')}: {p.get('collected')}/{p.get('total')} characters"
                ),
            )
            if character_limit is not None:
                raw_characters = raw_characters[:character_limit]

            if not raw_characters:
                logger.warning(f"No characters found for {work.type}/{work.id}")
            else:
                characters = self.normalizer.normalize_characters(raw_characters, work.id)
                character_stats = self.store.upsert_characters(work.type, work.id, characters)

        duration = round(time.monotonic() - started, 2)
        logger.info(f"Import of {work.type}/{work.id} finished in {duration}s")
        return {
            "success": True,
            "work": {"id": work.id, "type": work.type, "title": work.title},
            "characters": character_stats,
            "duration": duration,
        }

    async def import_batch(
        self,
        criteria_list: list[SearchCriteria],
        delay_between: float = 3.0,
        **import_options,
    ) -> list[dict[str, Any]]:
        """Import several works in order; one failure doesn't stop the batch."""
        results = []
        total = len(criteria_list)
        for index, criteria in enumerate(criteria_list, start=1):
            logger.info(f"[{index}/{total}] {criteria.describe()}")
            try:
                results.append(await self.import_work(criteria, **import_options))
            except Exception as e:
                logger.error(f"Import of {criteria.describe()} failed: {e}")
                results.append({"success": False, "criteria": criteria, "error": str(e)})

            if index < total:
                await self._sleep(delay_between)

        succeeded = sum(1 for r in results if r["success"])
        logger.info(f"Batch finished: {succeeded}/{total} succeeded")
        return results
