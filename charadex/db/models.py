"""Pydantic models for the records kept in the data directory."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import CharacterRole, RarityTier, WorkType


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, as written on disk."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ImageRef(BaseModel):
    """A single image attached to a work or character."""
    model_config = ConfigDict(extra="allow")

    url: str
    type: Optional[str] = None  # cover, banner, portrait, profile, screenshot
    source: Optional[str] = None


class Work(BaseModel):
    """A cataloged anime, manga or game. Identity is (type, id)."""
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: str
    type: WorkType
    title: str
    alt_titles: list[str] = Field(default_factory=list)
    source: Optional[str] = None
    source_id: Optional[str] = None
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    images: list[ImageRef] = Field(default_factory=list)
    external_ids: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("source_id", mode="before")
    @classmethod
    def _source_id_as_str(cls, value):
        return None if value is None else str(value)


class Character(BaseModel):
    """A character inside a work's collection. Identity is (work id, id)."""
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: str
    name: str
    alt_names: list[str] = Field(default_factory=list)
    role: CharacterRole = CharacterRole.OTHER
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    images: list[ImageRef] = Field(default_factory=list)
    external_ids: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)

    # Written by the ranking engine only
    rarity: Optional[RarityTier] = None
    score: Optional[float] = None


class QueueEntry(BaseModel):
    """A discovered work waiting to be imported."""
    model_config = ConfigDict(extra="allow")

    id: str  # source id, kept as a string
    title: str = ""
    type: Optional[str] = None
    popularity: Optional[int] = None
    score: Optional[float] = None
    episodes: Optional[int] = None
    status: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        return str(value)


class CrawlStats(BaseModel):
    total_processed: int = Field(default=0, alias="totalProcessed")
    total_characters: int = Field(default=0, alias="totalCharacters")
    last_run: Optional[str] = Field(default=None, alias="lastRun")

    model_config = ConfigDict(populate_by_name=True)


class CrawlState(BaseModel):
    """Persisted crawl progress for one work type (or the global union)."""
    model_config = ConfigDict(populate_by_name=True)

    processed_works: set[str] = Field(default_factory=set, alias="processedWorks")
    queue: list[QueueEntry] = Field(default_factory=list)
    stats: CrawlStats = Field(default_factory=CrawlStats)
    last_crawled: Optional[str] = Field(default=None, alias="lastCrawled")

    @field_validator("processed_works", mode="before")
    @classmethod
    def _ids_as_str(cls, value):
        return {str(v) for v in (value or [])}

    def to_json(self) -> dict:
        """On-disk shape: camelCase keys, processed ids as a sorted list."""
        data = self.model_dump(mode="json", by_alias=True)
        data["processedWorks"] = sorted(self.processed_works)
        return data


class RankedCharacter(BaseModel):
    id: str
    name: str = ""
    workId: str
    workTitle: str = ""
    workType: str
    role: str
    score: float
    rarity: RarityTier
    rank: int = 0
    image: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class RankingSnapshot(BaseModel):
    generated_at: str
    total_characters: int
    distribution: dict[str, int]
    characters: list[RankedCharacter] = Field(default_factory=list)


def work_score(info: dict) -> Optional[float]:
    """A work's average score, accepting the legacy ``averageScore`` key."""
    metadata = info.get("metadata") or {}
    for value in (metadata.get("score"), metadata.get("averageScore"), info.get("score"), info.get("averageScore")):
        if value is not None:
            return value
    return None
