"""Text cleanup shared by the normalizers."""

import html as html_module
import re
from typing import Any, Optional

from ..scrapers.errors import MalformedResponseError
from ..utils.title_utils import slugify


def clean_description(description: Optional[str]) -> str:
    """Strip HTML from a source description, keeping line breaks."""
    if not description:
        return ""
    text = re.sub(r"<br\s*/?>", "\n", description, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = html_module.unescape(text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def format_date(date_obj: Optional[dict]) -> Optional[str]:
    """AniList-style ``{year, month, day}`` -> ``YYYY-MM-DD`` (missing parts default to 1)."""
    if not date_obj or not date_obj.get("year"):
        return None
    month = date_obj.get("month") or 1
    day = date_obj.get("day") or 1
    return f"{date_obj['year']}-{month:02d}-{day:02d}"


def dedupe(values) -> list:
    """Drop falsy values and repeats, keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def record_id(name: Optional[str], source_key: str, source_id: Any) -> str:
    """Slug of ``name``, or ``<source_key>-<source_id>`` when it slugs to nothing.

    Native-script names ("進撃の巨人") have no ASCII to slug. Raises
    ``MalformedResponseError`` when there is no source id to fall back on.
    """
    slug = slugify(name)
    if slug:
        return slug
    if source_id is not None and str(source_id) != "":
        return slugify(f"{source_key}-{source_id}")
    raise MalformedResponseError(
        f"Cannot derive an id for {name!r}: no ASCII name and no source id", source=source_key
    )
