"""
Resumable crawl queue for one work type.

Lifecycle: EMPTY -> DISCOVERING -> QUEUED -> PROCESSING (one item at a
time) -> back to QUEUED until the drained prefix is gone, then EMPTY.

Discovery pages through the source's popular list and only enqueues ids
that are not already processed, queued, or in the WorkCache. A drain
attempts each item at most once per call: failures are recorded in the
report and the item is dropped from the queue, so re-running ``crawl``
(after re-discovery) is how an operator retries. State is saved after
every item, so an interrupted drain keeps the imports it finished.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ..db.models import CrawlState, QueueEntry, utc_now_iso
from ..enums import CrawlPhase, WorkType
from ..scrapers.base import SearchCriteria
from ..scrapers.cache import WorkCache
from ..scrapers.errors import StoreError
from . import crawl_state
from .importer import ImportWorkJob

logger = logging.getLogger(__name__)


MAX_DISCOVERY_PAGES = 10
MAX_PER_PAGE = 50
CRAWL_DISCOVERY_COUNT = 50
STATUS_PREVIEW = 5


class CrawlQueue:
    """Discover popular works of one type and import them at a bounded rate."""

    def __init__(
        self,
        data_dir: Path | str,
        work_type: WorkType | str,
        importer: ImportWorkJob,
        cache: Optional[WorkCache] = None,
        max_works: int = 50,
        character_limit: Optional[int] = 50,
        delay_between_imports: float = 10.0,
        delay_between_pages: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.data_dir = Path(data_dir)
        self.work_type = WorkType(work_type)
        self.importer = importer
        self.client = importer.client
        self.cache = cache or WorkCache.for_data_dir(self.data_dir)
        self.max_works = max_works
        self.character_limit = character_limit
        self.delay_between_imports = delay_between_imports
        self.delay_between_pages = delay_between_pages
        self._sleep = sleep
        self._stop_requested = False
        self.phase = CrawlPhase.EMPTY

    # ─── State ───────────────────────────────────────────────────────────

    def load_state(self) -> CrawlState:
        return crawl_state.load_state(self.data_dir, self.work_type)

    def save_state(self, state: CrawlState) -> None:
        crawl_state.save_state(self.data_dir, self.work_type, state)

    def _settle_phase(self, state: CrawlState) -> None:
        self.phase = CrawlPhase.QUEUED if state.queue else CrawlPhase.EMPTY

    def request_stop(self) -> None:
        """Stop after the in-flight item; state is still saved."""
        if not self._stop_requested:
            logger.info(f"Stop requested for {self.work_type} crawl")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    # ─── Discovery ───────────────────────────────────────────────────────

    def _known_ids(self, state: CrawlState) -> set[str]:
        self.cache.load(force=True)
        return (
            set(state.processed_works)
            | {entry.id for entry in state.queue}
            | set(self.cache.list_processed())
        )

    async def grow_queue(self, count: int = 20, page: int = 1) -> dict[str, int]:
        """Append up to ``count`` newly discovered works to the queue.

        Fetches at most ``MAX_DISCOVERY_PAGES`` pages of at most
        ``MAX_PER_PAGE`` entries, stopping early once the source has no
        next page.
        """
        logger.info(f"Growing {self.work_type} queue by up to {count} works...")
        state = self.load_state()
        self.phase = CrawlPhase.DISCOVERING

        try:
            known = self._known_ids(state)
            discovered: list[QueueEntry] = []
            current_page = page
            pages_fetched = 0

            while len(discovered) < count and pages_fetched < MAX_DISCOVERY_PAGES:
                per_page = min(count - len(discovered), MAX_PER_PAGE)
                logger.debug(f"Discovery page {current_page} ({per_page} works)")
                result = await self.client.discover_popular(self.work_type, current_page, per_page)
                pages_fetched += 1

                if not result.entries:
                    logger.warning(f"Discovery page {current_page} returned no works")
                    break

                fresh = [entry for entry in result.entries if entry.id not in known]
                known.update(entry.id for entry in fresh)
                discovered.extend(fresh)
                logger.info(f"  + {len(fresh)} new works from page {current_page}")

                if not result.has_next_page or len(discovered) >= count:
                    break
                current_page += 1
                await self._sleep(self.delay_between_pages)

            added = discovered[:count]
            state.queue.extend(added)
            self.save_state(state)
        finally:
            self._settle_phase(state)

        logger.info(f"Queue grown by {len(added)} works ({len(state.queue)} queued)")
        return {"added": len(added), "total_queue": len(state.queue), "requested": count}

    # ─── Drain ───────────────────────────────────────────────────────────

    async def process_entry(self, entry: QueueEntry) -> dict[str, Any]:
        """Import one queued work. Failures come back as ``success=False``."""
        logger.info(f"Processing: {entry.title} (id {entry.id})")
        try:
            result = await self.importer.import_work(
                SearchCriteria(id=entry.id, type=self.work_type),
                character_limit=self.character_limit,
            )
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"Failed to process {entry.title} (id {entry.id}): {e}")
            return {"success": False, "work": entry.model_dump(), "error": str(e)}

        characters = (result.get("characters") or {}).get("total", 0)
        self.cache.load()
        self.cache.mark_processed(
            entry.id, title=entry.title, type=str(self.work_type), charactersCount=characters
        )
        self.cache.save()
        logger.info(f"Processed {entry.title}: {characters} characters")
        return result

    async def crawl(self, max_works: Optional[int] = None, continue_from_queue: bool = False) -> dict[str, Any]:
        """Drain up to ``max_works`` items from the front of the queue.

        Grows the queue first unless ``continue_from_queue`` is set and
        the queue already has items. Returns a report with per-item
        results.
        """
        max_works = max_works or self.max_works
        state = self.load_state()

        if not continue_from_queue or not state.queue:
            grown = await self.grow_queue(count=CRAWL_DISCOVERY_COUNT)
            if not grown["added"]:
                logger.warning(f"No new {self.work_type} works discovered")
            state.queue = self.load_state().queue

        self.cache.load(force=True)
        cached = set(self.cache.list_processed())
        state.queue = [
            entry for entry in state.queue
            if entry.id not in state.processed_works and entry.id not in cached
        ]

        report: dict[str, Any] = {
            "processed": 0,
            "skipped": 0,
            "failed": 0,
            "characters": 0,
            "remaining": len(state.queue),
            "total_processed": state.stats.total_processed,
            "total_characters": state.stats.total_characters,
            "results": [],
        }
        if not state.queue:
            logger.info(f"Nothing queued for {self.work_type}")
            self.save_state(state)
            self._settle_phase(state)
            return report

        batch = state.queue[:max_works]
        logger.info(
            f"Crawling {len(batch)} of {len(state.queue)} queued {self.work_type} works "
            f"({len(state.processed_works)} already processed)"
        )

        try:
            for index, entry in enumerate(batch):
                if self._stop_requested:
                    logger.info("Stopping before the next item")
                    break
                # Attempted items leave the queue whatever the outcome
                state.queue.pop(0)

                # The processed set may have changed since the queue was pruned
                if entry.id in state.processed_works:
                    logger.info(f"Skipping {entry.title} (already processed)")
                    report["skipped"] += 1
                    continue

                self.phase = CrawlPhase.PROCESSING
                result = await self.process_entry(entry)
                report["results"].append(result)

                if result.get("success"):
                    total = (result.get("characters") or {}).get("total", 0)
                    state.processed_works.add(entry.id)
                    state.stats.total_processed += 1
                    state.stats.total_characters += total
                    report["processed"] += 1
                    report["characters"] += total
                else:
                    report["failed"] += 1
                self.save_state(state)

                if index < len(batch) - 1 and not self._stop_requested:
                    logger.info(f"Waiting {self.delay_between_imports}s before the next import...")
                    await self._sleep(self.delay_between_imports)
        finally:
            state.last_crawled = utc_now_iso()
            self.save_state(state)
            self._settle_phase(state)

        report["remaining"] = len(state.queue)
        report["total_processed"] = state.stats.total_processed
        report["total_characters"] = state.stats.total_characters
        logger.info(
            f"Crawl finished: {report['processed']} processed, {report['skipped']} skipped, "
            f"{report['failed']} failed, {report['remaining']} remaining"
        )
        return report

    # ─── Inspection ──────────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        state = self.load_state()
        return {
            "type": str(self.work_type),
            "phase": str(CrawlPhase.QUEUED if state.queue else CrawlPhase.EMPTY),
            "queue_length": len(state.queue),
            "next": [{"id": e.id, "title": e.title} for e in state.queue[:STATUS_PREVIEW]],
            "processed_count": len(state.processed_works),
            "total_processed": state.stats.total_processed,
            "total_characters": state.stats.total_characters,
            "last_run": state.stats.last_run,
        }

    def clear_queue(self) -> None:
        """Empty the queue; processed ids and stats are untouched."""
        state = self.load_state()
        state.queue = []
        self.save_state(state)
        self.phase = CrawlPhase.EMPTY
        logger.info(f"{self.work_type} queue cleared")

    def list_processed(self, limit: int = 20) -> dict[str, Any]:
        processed = sorted(self.load_state().processed_works)
        return {"total": len(processed), "ids": processed[:limit]}
