"""
Rarity scoring: named constants and the pure functions built on them.

    base  = 0.4 * norm(popularity) + 0.3 * norm(score) + 0.3 * role_multiplier
    final = base * scale_factor(episodes, character_count, role)

The scale factor's breakpoints are empirically tuned product behavior and
are reproduced exactly, including the boost that non-lead roles get in
works smaller than average.
"""

import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional, Sequence

from ..enums import CharacterRole, RarityTier

# ─── Weights ─────────────────────────────────────────────────────────────────

POPULARITY_WEIGHT = 0.4
SCORE_WEIGHT = 0.3
ROLE_WEIGHT = 0.3

ROLE_MULTIPLIERS = {
    CharacterRole.PROTAGONIST: 1.0,
    CharacterRole.DEUTERAGONIST: 0.85,
    CharacterRole.ANTAGONIST: 0.9,
    CharacterRole.SUPPORTING: 0.5,
    CharacterRole.MINOR: 0.2,
    CharacterRole.OTHER: 0.1,
}

# ─── Scale factor ────────────────────────────────────────────────────────────

# Fallback means when the store has no usable counts
DEFAULT_MEAN_EPISODES = 24
DEFAULT_MEAN_CHARACTERS = 30

EPISODE_LOG_WEIGHT = 0.3
CHARACTER_LOG_WEIGHT = 0.7
MIN_SIZE_RATIO = 0.1

# Piecewise reduction over the combined log-size
SMALL_WORK_SLOPE = 0.05       # combined <= 0
NEAR_MEAN_LIMIT = 0.7         # up to ~5x the mean
NEAR_MEAN_SLOPE = 0.08
LARGE_LIMIT = 1.3             # up to ~20x the mean
LARGE_OFFSET = 0.056
LARGE_SLOPE = 0.12
HUGE_OFFSET = 0.128
HUGE_SLOPE = 0.10
MAX_REDUCTION = 0.22

ROLE_BONUSES = {
    "protagonist": 0.22,
    "deuteragonist": 0.17,
    "main": 0.10,
}
OTHER_ROLE_PENALTY_SLOPE = 0.28
MAX_OTHER_ROLE_PENALTY = 0.35

MIN_SCALE = 0.55
MAX_SCALE = 1.15

# ─── Tiers ───────────────────────────────────────────────────────────────────

# A tier applies when the percentile is strictly above its cutoff
TIER_CUTOFFS = (
    (RarityTier.LEGENDARY, 0.95),
    (RarityTier.EPIC, 0.80),
    (RarityTier.RARE, 0.55),
    (RarityTier.UNCOMMON, 0.30),
)


@dataclass
class GlobalStats:
    """Store-wide ranges used to normalize per-work values."""
    min_popularity: float = 0
    max_popularity: float = 0
    min_score: float = 0
    max_score: float = 0
    mean_episodes: float = 0
    mean_characters: float = 0
    total_works: int = 0


def compute_global_stats(
    popularities: Sequence[Optional[float]],
    scores: Sequence[Optional[float]],
    episodes: Sequence[Optional[float]],
    character_counts: Sequence[Optional[float]],
) -> GlobalStats:
    """Ranges and means over positive values only; empty inputs give zeros."""

    def positive(values):
        return [v for v in values if v and v > 0]

    pops, scs = positive(popularities), positive(scores)
    eps, chars = positive(episodes), positive(character_counts)
    return GlobalStats(
        min_popularity=min(pops, default=0),
        max_popularity=max(pops, default=0),
        min_score=min(scs, default=0),
        max_score=max(scs, default=0),
        mean_episodes=sum(eps) / len(eps) if eps else 0,
        mean_characters=sum(chars) / len(chars) if chars else 0,
        total_works=len(popularities),
    )


def normalize(value: float, low: float, high: float) -> float:
    if high == low:
        return 0.5
    return (value - low) / (high - low)


def role_multiplier(role: Optional[str]) -> float:
    try:
        return ROLE_MULTIPLIERS[CharacterRole(role)]
    except ValueError:
        return ROLE_MULTIPLIERS[CharacterRole.OTHER]


def scale_factor(episodes: float, character_count: float, role: Optional[str], stats: GlobalStats) -> float:
    """Dampen scores for characters of unusually large works."""
    mean_episodes = stats.mean_episodes or DEFAULT_MEAN_EPISODES
    mean_characters = stats.mean_characters or DEFAULT_MEAN_CHARACTERS

    episode_ratio = episodes / mean_episodes if episodes and episodes > 0 else 1.0
    character_ratio = character_count / mean_characters if character_count and character_count > 0 else 1.0

    combined = (
        math.log10(max(episode_ratio, MIN_SIZE_RATIO)) * EPISODE_LOG_WEIGHT
        + math.log10(max(character_ratio, MIN_SIZE_RATIO)) * CHARACTER_LOG_WEIGHT
    )

    if combined <= 0:
        reduction = combined * SMALL_WORK_SLOPE
    elif combined <= NEAR_MEAN_LIMIT:
        reduction = combined * NEAR_MEAN_SLOPE
    elif combined <= LARGE_LIMIT:
        reduction = LARGE_OFFSET + (combined - NEAR_MEAN_LIMIT) * LARGE_SLOPE
    else:
        reduction = min(MAX_REDUCTION, HUGE_OFFSET + (combined - LARGE_LIMIT) * HUGE_SLOPE)

    if role in ROLE_BONUSES:
        bonus = ROLE_BONUSES[role]
    else:
        bonus = -min(MAX_OTHER_ROLE_PENALTY, combined * OTHER_ROLE_PENALTY_SLOPE)

    return max(MIN_SCALE, min(MAX_SCALE, 1.0 - reduction + bonus))


def base_score(popularity: float, score: float, role: Optional[str], stats: GlobalStats) -> float:
    return (
        normalize(popularity, stats.min_popularity, stats.max_popularity) * POPULARITY_WEIGHT
        + normalize(score, stats.min_score, stats.max_score) * SCORE_WEIGHT
        + role_multiplier(role) * ROLE_WEIGHT
    )


def final_score(
    popularity: float,
    score: float,
    episodes: float,
    character_count: float,
    role: Optional[str],
    stats: GlobalStats,
) -> float:
    return base_score(popularity, score, role, stats) * scale_factor(episodes, character_count, role, stats)


def percentile(value: float, sorted_scores: Sequence[float]) -> float:
    """Share of ``sorted_scores`` (ascending) that are <= ``value``."""
    if not sorted_scores:
        return 0.0
    return bisect_right(sorted_scores, value) / len(sorted_scores)


def tier_for(pct: float) -> RarityTier:
    for tier, cutoff in TIER_CUTOFFS:
        if pct > cutoff:
            return tier
    return RarityTier.COMMON
