"""
Canonical string enumerations for charadex.

StrEnum values serialize as plain strings, so they're
drop-in replacements for raw string literals in the JSON
files on disk.
"""

from enum import StrEnum


# ── Catalog ────────────────────────────────────────────────────────────

class WorkType(StrEnum):
    """Kinds of works kept in the store (one directory each)."""
    ANIME = "anime"
    MANGA = "manga"
    GAME = "game"


class Source(StrEnum):
    """External catalogs a work can be imported from."""
    ANILIST = "anilist"
    JIKAN = "jikan"
    RAWG = "rawg"

    @classmethod
    def parse(cls, value: str) -> "Source":
        """Accept the display names written into info.json as well as enum values."""
        key = (value or "").strip().lower()
        return _SOURCE_ALIASES.get(key) or cls(key)


_SOURCE_ALIASES = {
    "anilist": Source.ANILIST,
    "mal": Source.JIKAN,
    "myanimelist": Source.JIKAN,
    "jikan": Source.JIKAN,
    "rawg": Source.RAWG,
}


# Default source per work type
DEFAULT_SOURCE = {
    WorkType.ANIME: Source.ANILIST,
    WorkType.MANGA: Source.ANILIST,
    WorkType.GAME: Source.RAWG,
}


class CharacterRole(StrEnum):
    """Normalized character roles."""
    PROTAGONIST = "protagonist"
    DEUTERAGONIST = "deuteragonist"
    ANTAGONIST = "antagonist"
    SUPPORTING = "supporting"
    MINOR = "minor"
    OTHER = "other"


# ── Ranking ────────────────────────────────────────────────────────────

class RarityTier(StrEnum):
    """Percentile buckets, highest first."""
    LEGENDARY = "legendary"
    EPIC = "epic"
    RARE = "rare"
    UNCOMMON = "uncommon"
    COMMON = "common"


# ── Crawl ──────────────────────────────────────────────────────────────

class CrawlPhase(StrEnum):
    """Lifecycle of a crawl queue."""
    EMPTY = "empty"
    DISCOVERING = "discovering"
    QUEUED = "queued"
    PROCESSING = "processing"
