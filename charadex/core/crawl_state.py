"""
Crawl state persistence.

Each work type keeps ``crawl-state-<type>.json``; ``crawl-state.json`` is
the global union across types. Saving always writes the per-type file
and then read-merge-writes the global one, so crawls for different types
running as separate processes never drop each other's processed ids.
"""

import logging
from pathlib import Path

from pydantic import ValidationError

from ..db.files import read_json, write_json
from ..db.models import CrawlState, CrawlStats, utc_now_iso

logger = logging.getLogger(__name__)

GLOBAL_STATE_FILE = "crawl-state.json"


def state_path(data_dir: Path | str, work_type: str) -> Path:
    return Path(data_dir) / f"crawl-state-{work_type}.json"


def global_state_path(data_dir: Path | str) -> Path:
    return Path(data_dir) / GLOBAL_STATE_FILE


def read_state(path: Path | str) -> CrawlState:
    """Load a state file; missing or unreadable files yield a fresh state."""
    try:
        data = read_json(path, default=None)
    except ValueError as e:
        logger.warning(f"Crawl state {path} is corrupt, starting fresh: {e}")
        return CrawlState()
    if not data:
        return CrawlState()
    try:
        return CrawlState.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Crawl state {path} has an unexpected shape, starting fresh: {e}")
        return CrawlState()


def merge_states(base: CrawlState, incoming: CrawlState) -> CrawlState:
    """Union of processed ids and the max of each numeric stat.

    ``base`` keeps its own queue; the global file isn't a work queue.
    """
    last_runs = [r for r in (base.stats.last_run, incoming.stats.last_run) if r]
    last_crawled = [r for r in (base.last_crawled, incoming.last_crawled) if r]
    return CrawlState(
        processed_works=base.processed_works | incoming.processed_works,
        queue=list(base.queue),
        stats=CrawlStats(
            total_processed=max(base.stats.total_processed, incoming.stats.total_processed),
            total_characters=max(base.stats.total_characters, incoming.stats.total_characters),
            last_run=max(last_runs) if last_runs else None,
        ),
        last_crawled=max(last_crawled) if last_crawled else None,
    )


def load_state(data_dir: Path | str, work_type: str) -> CrawlState:
    return read_state(state_path(data_dir, work_type))


def save_state(data_dir: Path | str, work_type: str, state: CrawlState) -> CrawlState:
    """Persist ``state`` for ``work_type`` and fold it into the global file.

    Stamps ``stats.last_run``. Returns the merged global state.
    """
    state.stats.last_run = utc_now_iso()
    write_json(state_path(data_dir, work_type), state.to_json())

    global_path = global_state_path(data_dir)
    merged = merge_states(read_state(global_path), state)
    write_json(global_path, merged.to_json())
    logger.debug(
        f"Crawl state saved for {work_type} "
        f"({len(state.processed_works)} processed, {len(merged.processed_works)} globally)"
    )
    return merged
