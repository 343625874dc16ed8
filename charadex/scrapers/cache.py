"""
Processed-work cache for the crawl pipeline.

A small JSON map ``{source_id: {processedAt, ...}}`` stored at
``data/work-cache.json``. Used to skip works that were already imported
without asking the source again.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ..db.files import read_json, write_json
from ..db.models import utc_now_iso
from .errors import StoreError

logger = logging.getLogger(__name__)


CACHE_FILENAME = "work-cache.json"


class WorkCache:
    """Persistent set of already-processed work ids with metadata."""

    def __init__(self, cache_file: Path | str):
        self.cache_file = Path(cache_file)
        self._entries: dict[str, dict[str, Any]] = {}
        self._loaded = False

    @classmethod
    def for_data_dir(cls, data_dir: Path | str) -> "WorkCache":
        return cls(Path(data_dir) / CACHE_FILENAME)

    def load(self, force: bool = False) -> None:
        """Read the cache file once. Missing or unreadable files start empty."""
        if self._loaded and not force:
            return
        try:
            data = read_json(self.cache_file, default={})
        except ValueError as e:
            logger.warning(f"Work cache {self.cache_file} is corrupt, starting empty: {e}")
            data = {}
        self._entries = {str(k): v for k, v in (data or {}).items()}
        self._loaded = True

    def save(self) -> None:
        try:
            write_json(self.cache_file, self._entries)
        except StoreError as e:
            # Losing a cache write only costs a re-check next run
            logger.warning(f"Could not save work cache: {e}")

    def is_processed(self, work_id: str | int) -> bool:
        return str(work_id) in self._entries

    def mark_processed(self, work_id: str | int, **metadata: Any) -> None:
        self._entries[str(work_id)] = {"processedAt": utc_now_iso(), **metadata}

    def remove(self, work_id: str | int) -> None:
        self._entries.pop(str(work_id), None)

    def list_processed(self) -> list[str]:
        return list(self._entries.keys())

    def get_metadata(self, work_id: str | int) -> Optional[dict[str, Any]]:
        return self._entries.get(str(work_id))

    def clear(self) -> None:
        self._entries.clear()

    def rebuild_from(self, store) -> int:
        """Replace every entry with one per work in ``store``, keyed by source id.

        Works without a ``source_id`` are skipped. Returns the entry count.
        """
        self.clear()
        for work_type, work_id in store.list_works():
            info = store.get_work(work_type, work_id) or {}
            source_id = info.get("source_id")
            if source_id is None:
                logger.debug(f"Not caching {work_type}/{work_id}: no source id")
                continue
            metadata = {
                "type": work_type,
                "title": info.get("title"),
                "source": info.get("source"),
                "charactersCount": (store.get_characters(work_type, work_id) or {}).get("count", 0),
            }
            if info.get("updated_at"):
                metadata["processedAt"] = info["updated_at"]
            self.mark_processed(source_id, **metadata)
        logger.info(f"Work cache rebuilt with {len(self._entries)} works")
        return len(self._entries)

    def stats(self) -> dict:
        return {"total_works": len(self._entries), "cache_file": str(self.cache_file)}
