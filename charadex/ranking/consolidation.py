"""
Duplicate-work consolidation.

Seasons, arcs, movies and numbered sequels of one series are separate
works in the store. For ranking, works whose normalized base titles
collide (within a type) form a group and only the most popular work of
each group keeps its characters.

The title normalization is a best-effort regex chain over free text; the
``TitleMatcher`` protocol lets callers plug in something else.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)


NAMED_ARCS = (
    "Entertainment District|Hashira Training|Mugen Train|Swordsmith Village|"
    "War of Underworld|Alicization|Phantom Blood|Battle Tendency|Stardust Crusaders|"
    "Diamond is Unbreakable|Golden Wind|Stone Ocean|Steel Ball Run|Jojolion"
)

# Applied in order
TITLE_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    # "-Kimetsu no Yaiba-" style subtitles
    (re.compile(r"\s*-[^-]+-\s*"), " "),
    (re.compile(r"\s*:\s*(Season|Part|Final Season|The Movie|Movie|OVA|Special).*$", re.IGNORECASE), ""),
    (re.compile(rf"\s+({NAMED_ARCS})\s*(Arc|Part)?.*$", re.IGNORECASE), ""),
    (re.compile(r"\s+(Final\s+)?(Season|Part|Arc)\s+(\d+|Two|Three|One|II|III|IV|V|VI|Final).*$", re.IGNORECASE), ""),
    (re.compile(r"\s+Final\s+Season.*$", re.IGNORECASE), ""),
    # Trailing roman numerals
    (re.compile(r"\s+(I{1,3}|IV|V|VI{1,3}|IX|X|XI|XII)$", re.IGNORECASE), ""),
    # Trailing numbers, ordinals and "2nd Season"
    (re.compile(r"\s*\d+(st|nd|rd|th)?\s*(Season|Part)?$", re.IGNORECASE), ""),
    (re.compile(r"\s+"), " "),
)


def normalize_base_title(title: str) -> str:
    """Strip season / arc / movie / numbering suffixes from a title."""
    result = title or ""
    for pattern, replacement in TITLE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result.strip()


class TitleMatcher(Protocol):
    def base_title(self, title: str) -> str: ...


class RegexTitleMatcher:
    """Default matcher built on ``normalize_base_title``."""

    def base_title(self, title: str) -> str:
        return normalize_base_title(title)


@dataclass(frozen=True)
class WorkVersion:
    work_type: str
    work_id: str
    title: str
    popularity: float


def find_excluded_works(
    versions: Iterable[WorkVersion],
    matcher: TitleMatcher | None = None,
) -> set[tuple[str, str]]:
    """``(type, id)`` of every work that loses to a more popular version.

    Ties keep the first version seen.
    """
    matcher = matcher or RegexTitleMatcher()
    groups: dict[tuple[str, str], list[WorkVersion]] = {}
    for version in versions:
        key = (version.work_type, matcher.base_title(version.title))
        groups.setdefault(key, []).append(version)

    excluded: set[tuple[str, str]] = set()
    for (work_type, base), members in groups.items():
        if len(members) < 2:
            continue
        ranked = sorted(members, key=lambda v: v.popularity, reverse=True)
        logger.info(f"{work_type}/{base}: {len(members)} versions, keeping '{ranked[0].title}'")
        excluded.update((v.work_type, v.work_id) for v in ranked[1:])

    if excluded:
        logger.info(f"Consolidated {len(excluded)} duplicate works")
    return excluded
