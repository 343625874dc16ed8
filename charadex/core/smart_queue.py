"""
Long-running crawl daemon that rotates over work types.

Each cycle runs a small, conservative ``CrawlQueue.crawl`` for the next
type in the rotation, then waits: a short pause between types and a
longer one after a full rotation. Totals are kept in
``smart-queue-state.json`` so a restarted daemon resumes the rotation.

SIGINT / SIGTERM request a graceful stop: the in-flight import finishes,
crawl and daemon state are saved, then ``run`` returns.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from ..db.files import read_json, write_json
from ..db.models import utc_now_iso
from ..enums import Source, WorkType
from ..scrapers import registry
from .crawl_queue import CrawlQueue
from .importer import ImportWorkJob
from .shutdown import stop_on_signals

logger = logging.getLogger(__name__)

STATE_FILE = "smart-queue-state.json"

# Conservative pacing for unattended runs (seconds)
MAX_WORKS_PER_CYCLE = 2
CHARACTER_LIMIT = 15
DELAY_BETWEEN_TYPES = 300.0
DELAY_BETWEEN_CYCLES = 600.0
DELAY_BETWEEN_IMPORTS = 240.0
DELAY_BETWEEN_PAGES = 60.0

ANILIST_DAEMON_PACING = {
    "safe_mode": True,
    "smart_delay": True,
    "base_delay": 60.0,
    "delay_multiplier": 0.2,
    "max_delay": 300.0,
    "delay_between_pages": DELAY_BETWEEN_PAGES,
}

QueueFactory = Callable[[WorkType], CrawlQueue]


def _fresh_state() -> dict[str, Any]:
    return {
        "currentTypeIndex": 0,
        "lastRun": None,
        "stats": {"totalCycles": 0, "totalProcessed": 0, "totalCharacters": 0, "byType": {}},
        "startTime": utc_now_iso(),
    }


class SmartQueueJob:
    """Rotate conservative crawls over several work types until stopped."""

    def __init__(
        self,
        data_dir: Path | str,
        work_types: tuple[WorkType, ...] = (WorkType.ANIME, WorkType.MANGA),
        queue_factory: Optional[QueueFactory] = None,
        max_works_per_cycle: int = MAX_WORKS_PER_CYCLE,
        delay_between_types: float = DELAY_BETWEEN_TYPES,
        delay_between_cycles: float = DELAY_BETWEEN_CYCLES,
    ):
        self.data_dir = Path(data_dir)
        self.work_types = [WorkType(t) for t in work_types]
        self.queue_factory = queue_factory or self._default_queue
        self.max_works_per_cycle = max_works_per_cycle
        self.delay_between_types = delay_between_types
        self.delay_between_cycles = delay_between_cycles
        self.state_file = self.data_dir / STATE_FILE

        self.current_type_index = 0
        self.is_running = False
        self._current_queue: Optional[CrawlQueue] = None
        self._stop_event: Optional[asyncio.Event] = None

    def _default_queue(self, work_type: WorkType) -> CrawlQueue:
        source = registry.resolve_source(work_type)
        overrides = dict(ANILIST_DAEMON_PACING) if source == Source.ANILIST else {}
        importer = ImportWorkJob.for_type(self.data_dir, work_type, source, **overrides)
        return CrawlQueue(
            self.data_dir,
            work_type,
            importer,
            max_works=self.max_works_per_cycle,
            character_limit=CHARACTER_LIMIT,
            delay_between_imports=DELAY_BETWEEN_IMPORTS,
            delay_between_pages=DELAY_BETWEEN_PAGES,
        )

    # ─── State ───────────────────────────────────────────────────────────

    def load_state(self) -> dict[str, Any]:
        try:
            state = read_json(self.state_file, default=None)
        except ValueError as e:
            logger.warning(f"Smart queue state is corrupt, starting fresh: {e}")
            state = None
        state = state or _fresh_state()
        self.current_type_index = state.get("currentTypeIndex", 0) % len(self.work_types)
        return state

    def save_state(self, state: dict[str, Any]) -> None:
        state["currentTypeIndex"] = self.current_type_index
        state["lastRun"] = utc_now_iso()
        write_json(self.state_file, state)

    def reset(self) -> None:
        self.current_type_index = 0
        self.save_state(_fresh_state())
        logger.info("Smart queue state reset")

    def next_type(self) -> WorkType:
        work_type = self.work_types[self.current_type_index]
        self.current_type_index = (self.current_type_index + 1) % len(self.work_types)
        return work_type

    # ─── Cycle ───────────────────────────────────────────────────────────

    async def execute_cycle(self, state: dict[str, Any]) -> dict[str, Any]:
        """Crawl the next type once and fold its report into ``state``."""
        work_type = self.next_type()
        stats = state["stats"]
        logger.info(f"Cycle {stats['totalCycles'] + 1}: {work_type}")

        try:
            self._current_queue = self.queue_factory(work_type)
            report = await self._current_queue.crawl(
                max_works=self.max_works_per_cycle, continue_from_queue=True
            )
        except Exception as e:
            logger.error(f"Cycle for {work_type} failed: {e}")
            return {"success": False, "type": str(work_type), "error": str(e)}
        finally:
            self._current_queue = None

        by_type = stats["byType"].setdefault(str(work_type), {"processed": 0, "characters": 0, "cycles": 0})
        by_type["processed"] += report["processed"]
        by_type["characters"] += report["characters"]
        by_type["cycles"] += 1
        stats["totalCycles"] += 1
        stats["totalProcessed"] += report["processed"]
        stats["totalCharacters"] += report["characters"]

        logger.info(f"Cycle for {work_type} done: {report['processed']} works, {report['characters']} characters")
        return {"success": True, "type": str(work_type), "report": report}

    def stop(self) -> None:
        """Request a graceful stop from a signal handler or another task."""
        if self.is_running:
            logger.info("Stop requested; finishing the current item...")
        self.is_running = False
        if self._current_queue is not None:
            self._current_queue.request_stop()
        if self._stop_event is not None:
            self._stop_event.set()

    async def _wait(self, seconds: float) -> None:
        """Sleep that ends early when a stop is requested."""
        if seconds <= 0 or self._stop_event is None:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self, max_cycles: int = 0) -> dict[str, Any]:
        """Run cycles until stopped, or ``max_cycles`` cycles when non-zero."""
        state = self.load_state()
        self._stop_event = asyncio.Event()
        self.is_running = True
        logger.info(f"Smart queue started over: {', '.join(self.work_types)}")

        cycles = 0
        with stop_on_signals(self.stop):
            try:
                while self.is_running and (max_cycles == 0 or cycles < max_cycles):
                    cycles += 1
                    await self.execute_cycle(state)
                    self.save_state(state)

                    if not self.is_running or (max_cycles and cycles >= max_cycles):
                        break
                    if self.current_type_index != 0:
                        logger.info(f"Waiting {self.delay_between_types:.0f}s before the next type...")
                        await self._wait(self.delay_between_types)
                    else:
                        logger.info(f"Rotation complete; waiting {self.delay_between_cycles:.0f}s...")
                        await self._wait(self.delay_between_cycles)
            finally:
                self.is_running = False
                self.save_state(state)
                logger.info("Smart queue stopped")

        return state

    def status(self) -> dict[str, Any]:
        state = self.load_state()
        return {
            "work_types": [str(t) for t in self.work_types],
            "next_type": str(self.work_types[self.current_type_index]),
            **state,
        }
