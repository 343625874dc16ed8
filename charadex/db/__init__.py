"""Data directory package for charadex."""

from .files import read_json, write_json
from .models import (
    Character,
    CrawlState,
    CrawlStats,
    ImageRef,
    QueueEntry,
    RankedCharacter,
    RankingSnapshot,
    Work,
)
from .store import CatalogStore

__all__ = [
    "CatalogStore",
    "Character",
    "CrawlState",
    "CrawlStats",
    "ImageRef",
    "QueueEntry",
    "RankedCharacter",
    "RankingSnapshot",
    "Work",
    "read_json",
    "write_json",
]
