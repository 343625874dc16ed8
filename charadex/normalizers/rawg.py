"""RAWG payloads -> Work / Character.

RAWG has no fictional-character endpoint, so a game's "characters" are
its development team and creators.
"""

from typing import Any

from ..db.models import Character, ImageRef, Work
from ..enums import CharacterRole, WorkType
from ..utils.title_utils import slugify
from .text import clean_description, dedupe, record_id

SOURCE_NAME = "RAWG"

MAX_SCREENSHOTS = 5


def normalize_role(positions: Any) -> CharacterRole:
    """Map a role string or a list of RAWG positions to a CharacterRole."""
    if not positions:
        return CharacterRole.OTHER
    if isinstance(positions, str):
        text = positions.lower()
    else:
        text = " ".join(
            (p if isinstance(p, str) else p.get("name") or "").lower() for p in positions
        )
    if "director" in text or "creator" in text:
        return CharacterRole.PROTAGONIST
    if "producer" in text or "designer" in text:
        return CharacterRole.SUPPORTING
    return CharacterRole.OTHER


def _collect_images(game: dict[str, Any]) -> list[ImageRef]:
    images = []
    if game.get("background_image"):
        images.append(ImageRef(url=game["background_image"], type="cover", source=SOURCE_NAME))
    if game.get("background_image_additional"):
        images.append(ImageRef(url=game["background_image_additional"], type="background", source=SOURCE_NAME))
    for shot in (game.get("short_screenshots") or [])[:MAX_SCREENSHOTS]:
        if shot.get("image"):
            images.append(ImageRef(url=shot["image"], type="screenshot", source=SOURCE_NAME))
    return images


def normalize_work(game: dict[str, Any]) -> Work:
    titles = dedupe([game.get("name"), game.get("name_original"), *(game.get("alternative_names") or [])])
    main_title = titles[0] if titles else "Untitled"

    genres = [g["name"] for g in game.get("genres") or [] if g.get("name")]
    platforms = [p["platform"]["name"] for p in game.get("platforms") or [] if (p.get("platform") or {}).get("name")]
    esrb = (game.get("esrb_rating") or {}).get("name")

    return Work(
        id=game.get("slug") or record_id(titles[0] if titles else None, "rawg", game.get("id")),
        type=WorkType.GAME,
        title=main_title,
        alt_titles=titles[1:],
        source=SOURCE_NAME,
        source_id=game.get("id"),
        description=clean_description(game.get("description_raw") or game.get("description")),
        metadata={
            "released": game.get("released"),
            "score": game.get("rating"),
            "rating_top": game.get("rating_top"),
            "popularity": game.get("ratings_count") or game.get("added"),
            "metacritic": game.get("metacritic"),
            "playtime": game.get("playtime"),
            "esrb_rating": esrb,
            "genres": genres,
            "platforms": platforms,
            "developers": [d["name"] for d in game.get("developers") or [] if d.get("name")],
            "publishers": [p["name"] for p in game.get("publishers") or [] if p.get("name")],
            "website": game.get("website"),
        },
        images=_collect_images(game),
        external_ids={"rawg": game.get("id"), "rawg_slug": game.get("slug")},
        tags=dedupe([*genres[:5], *platforms[:3], esrb]),
    )


def _member_id(name: str, member_id: Any) -> str:
    """``<name>-<rawg id>``; just ``rawg-<id>`` for names with no ASCII."""
    if slugify(name):
        return slugify(f"{name}-{member_id}")
    return record_id(None, "rawg", member_id)


def normalize_characters(members: list[dict[str, Any]], work_id: str) -> list[Character]:
    characters = []
    for member in members:
        name = member.get("name") or "Unknown"
        positions = [p.get("name") for p in member.get("positions") or [] if p.get("name")]
        image = member.get("image") or member.get("image_background")

        characters.append(Character(
            id=_member_id(name, member.get("id")),
            name=name,
            role=normalize_role(member.get("role") or member.get("positions")),
            description=member.get("description") or ", ".join(positions),
            metadata={
                "games_count": member.get("games_count"),
                "positions": positions,
                "rating": member.get("rating"),
            },
            images=[ImageRef(url=image, type="profile", source=SOURCE_NAME)] if image else [],
            external_ids={"rawg": member.get("id")},
            tags=positions,
        ))
    return characters


def normalize_media_list(games: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Condensed search results; ``id`` is the RAWG id ``import --id`` takes."""
    return [
        {
            "id": g.get("id"),
            "title": g.get("name"),
            "year": (g.get("released") or "")[:4] or None,
            "format": "game",
            "popularity": g.get("ratings_count") or g.get("added"),
        }
        for g in games
    ]
