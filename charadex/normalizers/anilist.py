"""AniList GraphQL payloads -> Work / Character."""

from typing import Any

from ..db.models import Character, ImageRef, Work
from ..enums import CharacterRole, WorkType
from .text import clean_description, dedupe, format_date, record_id

SOURCE_NAME = "AniList"

# Tags below this community rank are noise
MIN_TAG_RANK = 60

ROLE_MAP = {
    "MAIN": CharacterRole.PROTAGONIST,
    "SUPPORTING": CharacterRole.SUPPORTING,
    "BACKGROUND": CharacterRole.MINOR,
}


def normalize_role(role: str | None) -> CharacterRole:
    return ROLE_MAP.get((role or "").upper(), CharacterRole.OTHER)


def normalize_work(media: dict[str, Any]) -> Work:
    title = media.get("title") or {}
    titles = dedupe([title.get("english"), title.get("romaji"), title.get("native")])
    main_title = titles[0] if titles else "Untitled"

    media_type = (media.get("type") or "").upper()
    work_type = WorkType.MANGA if media_type == "MANGA" else WorkType.ANIME

    metadata: dict[str, Any] = {
        "format": media.get("format"),
        "status": media.get("status"),
        "startDate": format_date(media.get("startDate")),
        "endDate": format_date(media.get("endDate")),
        "genres": media.get("genres") or [],
        "score": media.get("averageScore"),
        "popularity": media.get("popularity"),
    }
    if work_type == WorkType.ANIME:
        metadata["episodes"] = media.get("episodes")
    else:
        metadata["chapters"] = media.get("chapters")
        metadata["volumes"] = media.get("volumes")

    images = []
    cover = (media.get("coverImage") or {}).get("large")
    if cover:
        images.append(ImageRef(url=cover, type="cover", source=SOURCE_NAME))
    if media.get("bannerImage"):
        images.append(ImageRef(url=media["bannerImage"], type="banner", source=SOURCE_NAME))

    return Work(
        id=record_id(titles[0] if titles else None, "anilist", media.get("id")),
        type=work_type,
        title=main_title,
        alt_titles=titles[1:],
        source=SOURCE_NAME,
        source_id=media.get("id"),
        description=clean_description(media.get("description")),
        metadata=metadata,
        images=images,
        external_ids={"anilist": media.get("id")},
        tags=[t["name"] for t in media.get("tags") or [] if (t.get("rank") or 0) >= MIN_TAG_RANK],
    )


def normalize_characters(edges: list[dict[str, Any]], work_id: str) -> list[Character]:
    """Character edges (``{role, node}``) -> Character records."""
    characters = []
    for edge in edges:
        node = edge.get("node") or {}
        name = node.get("name") or {}
        full_name = name.get("full") or ""

        metadata: dict[str, Any] = {}
        if node.get("gender"):
            metadata["gender"] = node["gender"].lower()
        if node.get("age"):
            metadata["age"] = node["age"]
        if node.get("dateOfBirth"):
            birthday = format_date(node["dateOfBirth"])
            if birthday:
                metadata["dateOfBirth"] = birthday

        images = []
        portrait = (node.get("image") or {}).get("large")
        if portrait:
            images.append(ImageRef(url=portrait, type="portrait", source=SOURCE_NAME))

        characters.append(Character(
            id=record_id(full_name, "anilist", node.get("id")),
            name=full_name,
            alt_names=dedupe([name.get("native"), *(name.get("alternative") or [])]),
            role=normalize_role(edge.get("role")),
            description=clean_description(node.get("description")),
            metadata=metadata,
            images=images,
            external_ids={"anilist": node.get("id")},
        ))
    return characters


def normalize_media_list(media_list: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Condensed search results for the lookup command."""
    return [
        {
            "id": m.get("id"),
            "title": (m.get("title") or {}).get("romaji")
            or (m.get("title") or {}).get("english")
            or (m.get("title") or {}).get("native"),
            "year": (m.get("startDate") or {}).get("year"),
            "format": m.get("format"),
            "popularity": m.get("popularity"),
        }
        for m in media_list
    ]
