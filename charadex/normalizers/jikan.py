"""Jikan (MyAnimeList) payloads -> Work / Character."""

from typing import Any

from ..db.models import Character, ImageRef, Work
from ..enums import CharacterRole, WorkType
from ..utils.title_utils import generate_id
from .text import dedupe, record_id

SOURCE_NAME = "MyAnimeList"

MISSING_DESCRIPTION = (
    "No description available from MyAnimeList. "
    "Import with --source anilist for full character descriptions."
)

ROLE_MAP = {
    "MAIN": CharacterRole.PROTAGONIST,
    "SUPPORTING": CharacterRole.SUPPORTING,
}


def normalize_role(role: str | None) -> CharacterRole:
    return ROLE_MAP.get((role or "").upper(), CharacterRole.MINOR)


def normalize_work(anime: dict[str, Any]) -> Work:
    titles = dedupe([
        anime.get("title"),
        anime.get("title_english"),
        anime.get("title_japanese"),
        *(anime.get("title_synonyms") or []),
    ])
    main_title = titles[0] if titles else "Untitled"
    genres = [g["name"] for g in anime.get("genres") or [] if g.get("name")]
    aired = anime.get("aired") or {}

    cover = (((anime.get("images") or {}).get("jpg")) or {}).get("large_image_url")
    images = [ImageRef(url=cover, type="cover", source=SOURCE_NAME)] if cover else []

    return Work(
        id=record_id(titles[0] if titles else None, "mal", anime.get("mal_id")),
        type=WorkType.ANIME,
        title=main_title,
        alt_titles=titles[1:],
        source=SOURCE_NAME,
        source_id=anime.get("mal_id"),
        description=anime.get("synopsis") or "",
        metadata={
            "format": anime.get("type"),
            "status": anime.get("status"),
            "startDate": aired.get("from"),
            "endDate": aired.get("to"),
            "genres": genres,
            "score": anime.get("score"),
            "popularity": anime.get("members"),
            "episodes": anime.get("episodes"),
        },
        images=images,
        external_ids={"mal": anime.get("mal_id")},
        tags=genres,
    )


def _name_of(node: dict[str, Any]) -> str:
    """Jikan names are plain strings; AniList-shaped edges nest them under ``full``."""
    name = node.get("name")
    if isinstance(name, dict):
        return name.get("full") or ""
    return name or ""


def normalize_characters(edges: list[dict[str, Any]], work_id: str) -> list[Character]:
    """Edges as returned by ``JikanClient.collect_characters`` -> Character records."""
    characters = []
    for edge in edges:
        node = edge.get("node") or {}
        name = _name_of(node)
        raw_name = node.get("name")
        alternative = raw_name.get("alternative") if isinstance(raw_name, dict) else None

        metadata = {k: node[k] for k in ("gender", "age") if node.get(k)}
        portrait = (node.get("image") or {}).get("large")

        characters.append(Character(
            id=generate_id(work_id, record_id(name, "mal", node.get("id"))),
            name=name,
            alt_names=list(alternative or []),
            role=normalize_role(edge.get("role")),
            description=node.get("description") or node.get("about") or MISSING_DESCRIPTION,
            metadata=metadata,
            images=[ImageRef(url=portrait, type="portrait", source=SOURCE_NAME)] if portrait else [],
            external_ids={"mal": node.get("id")},
            voice_actors=[
                {
                    "id": va.get("id"),
                    "name": _name_of(va),
                    "language": va.get("language"),
                }
                for va in edge.get("voiceActors") or []
            ],
        ))
    return characters


def normalize_media_list(anime_list: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "id": a.get("mal_id"),
            "title": a.get("title"),
            "year": a.get("year"),
            "format": a.get("type"),
            "popularity": a.get("members"),
        }
        for a in anime_list
    ]
