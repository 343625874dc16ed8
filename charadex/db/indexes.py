"""
Browsing indexes derived from the store.

``generate_indexes`` rewrites ``<type>/index.json`` (a flat list of works
for the browsing layer) and ``database-stats.json`` (aggregate counts and
distributions). Both are fully regenerated on every call.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Optional

from ..enums import WorkType
from .files import write_json
from .models import utc_now_iso, work_score
from .store import CatalogStore

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
STATS_FILE = "database-stats.json"

DESCRIPTION_PREVIEW = 200
TOP_GENRES = 10


def _index_entry(work_type: str, slug: str, info: dict, characters_count: int) -> dict[str, Any]:
    metadata = info.get("metadata") or {}
    images = info.get("images") or []
    return {
        "slug": slug,
        "title": info.get("title"),
        "cover_image": images[0].get("url") if images else None,
        "format": metadata.get("format"),
        "status": metadata.get("status"),
        "description": (info.get("description") or "")[:DESCRIPTION_PREVIEW],
        "genres": metadata.get("genres") or [],
        "score": work_score(info),
        "characters_count": characters_count,
        "source": info.get("source"),
        "created_at": info.get("created_at"),
        "updated_at": info.get("updated_at"),
        "type": work_type,
    }


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0


def generate_indexes(data_dir: Path | str, store: Optional[CatalogStore] = None) -> dict:
    """Write every per-type index plus the database stats; return the stats."""
    store = store or CatalogStore(data_dir)
    data_dir = Path(data_dir)

    stats: dict[str, Any] = {
        "generated_at": utc_now_iso(),
        "types": {},
        "total_works": 0,
        "total_characters": 0,
        "total_genres": 0,
        "average_score": 0,
    }
    scores: list[float] = []
    genre_counts: Counter = Counter()
    status_counts: Counter = Counter()
    source_counts: Counter = Counter()
    format_counts: Counter = Counter()
    first_import: Optional[str] = None
    last_import: Optional[str] = None
    last_updated_by_type: dict[str, str] = {}
    total_size = 0

    for work_type in [t.value for t in WorkType]:
        entries = []
        type_characters = 0
        type_genres: set[str] = set()

        for _, slug in store.list_works(work_type):
            try:
                info = store.get_work(work_type, slug) or {}
                collection = store.get_characters(work_type, slug) or {}
            except ValueError as e:
                logger.warning(f"Skipping {work_type}/{slug}: unreadable JSON ({e})")
                continue

            count = len(collection.get("characters") or [])
            type_characters += count
            total_size += _file_size(store.info_path(work_type, slug))
            total_size += _file_size(store.characters_path(work_type, slug))

            metadata = info.get("metadata") or {}
            genres = metadata.get("genres") or []
            type_genres.update(genres)
            genre_counts.update(genres)

            score = work_score(info)
            if score:
                scores.append(score)
            status_counts[metadata.get("status") or "unknown"] += 1
            source_counts[info.get("source") or "unknown"] += 1
            format_counts[metadata.get("format") or "unknown"] += 1

            # ISO-8601 UTC strings order lexically
            created = info.get("created_at") or info.get("updated_at")
            updated = info.get("updated_at")
            if created and (first_import is None or created < first_import):
                first_import = created
            if updated and (last_import is None or updated > last_import):
                last_import = updated
            if updated and updated > last_updated_by_type.get(work_type, ""):
                last_updated_by_type[work_type] = updated

            entries.append(_index_entry(work_type, slug, info, count))

        if entries or (data_dir / work_type).is_dir():
            write_json(data_dir / work_type / INDEX_FILE, entries)

        stats["types"][work_type] = {
            "works_count": len(entries),
            "characters_count": type_characters,
            "genres_count": len(type_genres),
        }
        stats["total_works"] += len(entries)
        stats["total_characters"] += type_characters
        stats["total_genres"] += len(type_genres)
        logger.info(f"{work_type}: indexed {len(entries)} works, {type_characters} characters")

    if scores:
        stats["average_score"] = round(sum(scores) / len(scores))

    stats["database_info"] = {
        "first_import": first_import,
        "last_import": last_import,
        "total_file_size": total_size,
        "average_characters_per_work": (
            round(stats["total_characters"] / stats["total_works"], 2) if stats["total_works"] else 0
        ),
    }
    stats["distribution"] = {
        "by_status": dict(status_counts),
        "by_source": dict(source_counts),
        "by_format": dict(format_counts),
        "top_genres": [{"genre": g, "count": c} for g, c in genre_counts.most_common(TOP_GENRES)],
    }
    stats["performance"] = {"last_updated_by_type": last_updated_by_type}

    write_json(data_dir / STATS_FILE, stats)
    logger.info(f"Database stats saved: {stats['total_works']} works, {stats['total_characters']} characters")
    return stats
