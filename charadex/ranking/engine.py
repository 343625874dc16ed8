"""
Batch rarity ranking over the whole store.

One run:
  1. global stats pass over every work (popularity / score ranges,
     mean episode and character counts),
  2. a score for every character,
  3. duplicate-work consolidation (losing versions drop out entirely),
  4. percentile tiers over the remaining scores,
  5. ``rarity`` / ``score`` written back to each characters.json and the
     snapshot written to ``character-ranking.json``.

Works whose info or characters file is missing or unreadable are skipped
with a warning. Re-running on an unchanged store reproduces the same
tiers and ranks.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..db.files import write_json
from ..db.models import RankedCharacter, RankingSnapshot, utc_now_iso, work_score
from ..db.store import CatalogStore
from ..enums import RarityTier
from . import scoring
from .consolidation import RegexTitleMatcher, TitleMatcher, WorkVersion, find_excluded_works

logger = logging.getLogger(__name__)

RANKING_FILE = "character-ranking.json"
SCORE_PRECISION = 6


@dataclass
class _LoadedWork:
    work_type: str
    work_id: str
    info: dict
    characters: list[dict]
    character_count: int

    @property
    def metadata(self) -> dict:
        return self.info.get("metadata") or {}

    @property
    def popularity(self) -> float:
        return self.metadata.get("popularity") or self.info.get("popularity") or 0

    @property
    def score(self) -> float:
        return work_score(self.info) or 0

    @property
    def episodes(self) -> float:
        return self.metadata.get("episodes") or self.info.get("episodes") or 0


@dataclass
class _ScoredCharacter:
    work: _LoadedWork
    character: dict
    score: float


class RankingEngine:
    """Score, consolidate and tier every character in the store."""

    def __init__(
        self,
        data_dir: Path | str,
        store: Optional[CatalogStore] = None,
        matcher: Optional[TitleMatcher] = None,
    ):
        self.data_dir = Path(data_dir)
        self.store = store or CatalogStore(self.data_dir)
        self.matcher = matcher or RegexTitleMatcher()

    # ─── Loading ─────────────────────────────────────────────────────────

    def _load_works(self) -> list[_LoadedWork]:
        works = []
        for work_type, work_id in self.store.list_works():
            try:
                info = self.store.get_work(work_type, work_id)
                collection = self.store.get_characters(work_type, work_id)
            except ValueError as e:
                logger.warning(f"Skipping {work_type}/{work_id}: unreadable JSON ({e})")
                continue
            if info is None:
                logger.warning(f"Skipping {work_type}/{work_id}: no info.json")
                continue

            characters = (collection or {}).get("characters") or []
            count = (collection or {}).get("count") or len(characters)
            works.append(_LoadedWork(work_type, work_id, info, characters, count))
        return works

    def _global_stats(self, works: list[_LoadedWork]) -> scoring.GlobalStats:
        stats = scoring.compute_global_stats(
            popularities=[w.popularity for w in works],
            scores=[w.score for w in works],
            episodes=[w.episodes for w in works],
            character_counts=[w.character_count for w in works],
        )
        logger.info(
            f"Global stats over {stats.total_works} works: popularity "
            f"{stats.min_popularity}-{stats.max_popularity}, score {stats.min_score}-{stats.max_score}, "
            f"mean episodes {stats.mean_episodes:.1f}, mean characters {stats.mean_characters:.1f}"
        )
        return stats

    # ─── Run ─────────────────────────────────────────────────────────────

    def run(self) -> RankingSnapshot:
        works = self._load_works()
        stats = self._global_stats(works)

        scored: list[_ScoredCharacter] = []
        for work in works:
            if not work.characters:
                logger.warning(f"Skipping {work.work_type}/{work.work_id}: no characters")
                continue
            for character in work.characters:
                value = scoring.final_score(
                    work.popularity,
                    work.score,
                    work.episodes,
                    work.character_count,
                    character.get("role") or "other",
                    stats,
                )
                scored.append(_ScoredCharacter(work, character, value))
        logger.info(f"Scored {len(scored)} characters")

        excluded = find_excluded_works(
            (
                WorkVersion(w.work_type, w.work_id, w.info.get("title") or w.work_id, w.popularity)
                for w in works if w.characters
            ),
            self.matcher,
        )
        kept = [s for s in scored if (s.work.work_type, s.work.work_id) not in excluded]
        if len(kept) != len(scored):
            logger.info(f"Consolidation: {len(scored)} -> {len(kept)} characters")

        sorted_scores = sorted(s.score for s in kept)
        tiers = [scoring.tier_for(scoring.percentile(s.score, sorted_scores)) for s in kept]

        self._write_back(kept, tiers)
        snapshot = self._snapshot(kept, tiers)
        write_json(self.data_dir / RANKING_FILE, snapshot.model_dump(mode="json"))
        logger.info(
            f"Ranking saved: {snapshot.total_characters} characters "
            + ", ".join(f"{tier} {count}" for tier, count in snapshot.distribution.items())
        )
        return snapshot

    def _write_back(self, kept: list[_ScoredCharacter], tiers: list[RarityTier]) -> None:
        by_work: dict[tuple[str, str], dict[str, tuple[str, float]]] = {}
        for item, tier in zip(kept, tiers):
            key = (item.work.work_type, item.work.work_id)
            by_work.setdefault(key, {})[item.character.get("id")] = (
                str(tier), round(item.score, SCORE_PRECISION)
            )

        updated = 0
        for (work_type, work_id), tier_map in by_work.items():
            updated += self.store.write_tiers(work_type, work_id, tier_map)
        logger.info(f"Rarity written to {updated} characters across {len(by_work)} works")

    def _snapshot(self, kept: list[_ScoredCharacter], tiers: list[RarityTier]) -> RankingSnapshot:
        rows = []
        for item, tier in zip(kept, tiers):
            images = item.character.get("images") or []
            rows.append(RankedCharacter(
                id=item.character.get("id"),
                name=item.character.get("name") or "",
                workId=item.work.work_id,
                workTitle=item.work.info.get("title") or "",
                workType=item.work.work_type,
                role=item.character.get("role") or "other",
                score=round(item.score, SCORE_PRECISION),
                rarity=tier,
                image=images[0].get("url") if images else None,
            ))

        # Stable sort keeps load order among equal scores
        rows.sort(key=lambda r: r.score, reverse=True)
        for position, row in enumerate(rows, start=1):
            row.rank = position

        counts = Counter(row.rarity for row in rows)
        return RankingSnapshot(
            generated_at=utc_now_iso(),
            total_characters=len(rows),
            distribution={tier.value: counts.get(tier.value, 0) for tier in RarityTier},
            characters=rows,
        )
