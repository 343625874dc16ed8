"""
JSON-file catalog store with idempotent merge-on-upsert.

Layout under the data directory:

    <type>/<work_id>/info.json         Work record
    <type>/<work_id>/characters.json   {work_id, count, characters[], updated_at}

Every write rewrites a whole file (see ``files.write_json``). Only one
pipeline instance is expected to mutate a given work at a time.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from pydantic import BaseModel

from ..enums import WorkType
from .files import read_json, write_json
from .models import utc_now_iso

logger = logging.getLogger(__name__)


INFO_FILE = "info.json"
CHARACTERS_FILE = "characters.json"

# Character fields merged as set unions instead of overwritten
UNION_LIST_FIELDS = ("alt_names", "tags")


def _as_dict(record: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json", exclude_none=True)
    return dict(record)


def _union(existing: list, incoming: list) -> list:
    """Order-preserving set union: existing items first, then new ones."""
    merged = list(existing)
    seen = set(merged)
    for item in incoming:
        if item not in seen:
            merged.append(item)
            seen.add(item)
    return merged


def merge_images(existing: list[dict], incoming: list[dict]) -> list[dict]:
    """Union keyed by ``url``; known URLs keep their original metadata."""
    by_url = {img.get("url"): img for img in existing}
    for img in incoming:
        url = img.get("url")
        if url not in by_url:
            by_url[url] = img
    return list(by_url.values())


def merge_character(existing: dict, incoming: dict) -> dict:
    """Field-merge ``incoming`` over ``existing``.

    Scalars are overwritten by the incoming value. ``alt_names`` and
    ``tags`` become set unions, ``images`` a union keyed by url, and
    ``external_ids`` a key-wise union where incoming keys win.
    """
    merged = {**existing, **incoming}

    for key in UNION_LIST_FIELDS:
        if key in existing and key in incoming:
            merged[key] = _union(existing[key] or [], incoming[key] or [])

    if "images" in existing and "images" in incoming:
        merged["images"] = merge_images(existing["images"] or [], incoming["images"] or [])

    if "external_ids" in existing and "external_ids" in incoming:
        merged["external_ids"] = {**(existing["external_ids"] or {}), **(incoming["external_ids"] or {})}

    return merged


def _matches(character: dict, name: Optional[str], role: Optional[str], tag: Optional[str]) -> bool:
    if name:
        needle = name.lower()
        names = [character.get("name") or ""] + list(character.get("alt_names") or [])
        if not any(needle in n.lower() for n in names):
            return False
    if role and character.get("role") != role:
        return False
    if tag and tag not in (character.get("tags") or []):
        return False
    return True


class CatalogStore:
    """Owns the on-disk layout of works and their character collections."""

    def __init__(self, base_dir: Path | str = "./data"):
        self.base_dir = Path(base_dir)

    # ─── Paths ───────────────────────────────────────────────────────────

    def work_dir(self, work_type: str, work_id: str) -> Path:
        return self.base_dir / str(work_type) / work_id

    def info_path(self, work_type: str, work_id: str) -> Path:
        return self.work_dir(work_type, work_id) / INFO_FILE

    def characters_path(self, work_type: str, work_id: str) -> Path:
        return self.work_dir(work_type, work_id) / CHARACTERS_FILE

    # ─── Works ───────────────────────────────────────────────────────────

    def upsert_work(self, work_type: str, work_id: str, data: Mapping[str, Any] | BaseModel) -> dict:
        """Insert or shallow-merge a work record.

        New values win; ``created_at`` survives from the first write and
        ``updated_at`` is always refreshed.
        """
        path = self.info_path(work_type, work_id)
        existing = read_json(path, default=None)
        now = utc_now_iso()
        incoming = _as_dict(data)

        if existing:
            merged = {**existing, **incoming}
            merged["created_at"] = existing.get("created_at") or incoming.get("created_at") or now
        else:
            merged = dict(incoming)
            merged["created_at"] = incoming.get("created_at") or now
        merged["updated_at"] = now

        write_json(path, merged)
        logger.info(f"Work saved: {work_type}/{work_id}")
        return merged

    def get_work(self, work_type: str, work_id: str) -> Optional[dict]:
        return read_json(self.info_path(work_type, work_id), default=None)

    def list_works(self, work_type: Optional[str] = None) -> Iterator[tuple[str, str]]:
        """Yield ``(type, work_id)`` for every work directory holding an info.json."""
        types = [work_type] if work_type else [t.value for t in WorkType]
        for t in types:
            type_dir = self.base_dir / str(t)
            if not type_dir.is_dir():
                continue
            for entry in sorted(type_dir.iterdir()):
                if entry.is_dir() and (entry / INFO_FILE).exists():
                    yield str(t), entry.name

    # ─── Characters ──────────────────────────────────────────────────────

    def _load_collection(self, work_type: str, work_id: str) -> dict:
        return read_json(
            self.characters_path(work_type, work_id),
            default={"work_id": work_id, "count": 0, "characters": [], "updated_at": None},
        )

    def get_characters(self, work_type: str, work_id: str) -> Optional[dict]:
        """The raw characters.json payload, or None when it doesn't exist."""
        return read_json(self.characters_path(work_type, work_id), default=None)

    def upsert_characters(
        self,
        work_type: str,
        work_id: str,
        new_characters: list[Mapping[str, Any] | BaseModel],
    ) -> dict:
        """Merge a batch of characters into the work's collection.

        Returns ``{added, updated, total}``. Applying the same batch twice
        leaves the collection unchanged and reports ``added=0`` the second
        time.
        """
        collection = self._load_collection(work_type, work_id)
        by_id: dict[str, dict] = {c["id"]: c for c in collection.get("characters", [])}

        added = 0
        updated = 0
        for record in new_characters:
            incoming = _as_dict(record)
            char_id = incoming["id"]
            existing = by_id.get(char_id)
            if existing is None:
                by_id[char_id] = incoming
                added += 1
            else:
                by_id[char_id] = merge_character(existing, incoming)
                updated += 1

        collection["work_id"] = collection.get("work_id") or work_id
        collection["characters"] = list(by_id.values())
        collection["count"] = len(by_id)
        collection["updated_at"] = utc_now_iso()

        write_json(self.characters_path(work_type, work_id), collection)
        logger.info(
            f"Characters saved: {work_type}/{work_id} "
            f"({added} new, {updated} updated, {collection['count']} total)"
        )
        return {"added": added, "updated": updated, "total": collection["count"]}

    def find_characters(
        self,
        work_type: str,
        work_id: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> list[dict]:
        """Filter a work's characters; all given criteria must match.

        ``name`` is a case-insensitive substring test over ``name`` and
        ``alt_names``; ``role`` and ``tag`` are exact.
        """
        collection = self.get_characters(work_type, work_id)
        if not collection:
            return []
        return [c for c in collection.get("characters", []) if _matches(c, name, role, tag)]

    def write_tiers(self, work_type: str, work_id: str, tiers: Mapping[str, tuple[str, float]]) -> int:
        """Stamp ``rarity`` and ``score`` onto characters present in ``tiers``.

        Returns the number of characters updated. Characters not in the map
        keep whatever they had.
        """
        collection = self.get_characters(work_type, work_id)
        if not collection:
            return 0

        updated = 0
        for character in collection.get("characters", []):
            entry = tiers.get(character.get("id"))
            if entry is None:
                continue
            character["rarity"], character["score"] = entry
            updated += 1

        write_json(self.characters_path(work_type, work_id), collection)
        return updated

    # ─── Stats ───────────────────────────────────────────────────────────

    def get_work_stats(self, work_type: str, work_id: str) -> Optional[dict]:
        collection = self.get_characters(work_type, work_id)
        if collection is None:
            return None
        info = self.get_work(work_type, work_id) or {}

        by_role = Counter((c.get("role") or "unknown") for c in collection.get("characters", []))
        return {
            "work_id": work_id,
            "type": work_type,
            "title": info.get("title"),
            "total_characters": collection.get("count", len(collection.get("characters", []))),
            "by_role": dict(by_role),
            "last_updated": collection.get("updated_at"),
        }
