"""
Slug helpers for work and character identifiers.
"""
import re
import unicodedata


def slugify(text) -> str:
    """
    Generate a URL-safe slug from text.

    Transformations:
    - Lowercase
    - Decompose accents and drop the combining marks
    - Strip anything that isn't an ASCII word character, space or hyphen
    - Collapse whitespace/hyphen runs into a single hyphen

    Examples:
        "Shingeki no Kyojin" -> "shingeki-no-kyojin"
        "Pokémon: Let's Go" -> "pokemon-lets-go"
        "進撃の巨人" -> ""
    """
    if text is None or text == "":
        return ""

    result = unicodedata.normalize("NFD", str(text).lower())
    result = re.sub(r"[\u0300-\u036f]", "", result)
    result = re.sub(r"[^\w\s-]", "", result, flags=re.ASCII)
    result = result.strip()
    result = re.sub(r"\s+", "-", result)
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


def generate_id(*parts) -> str:
    """
    Join the slugs of the non-empty parts with underscores.

    Examples:
        generate_id("naruto", "Sakura Haruno") -> "naruto_sakura-haruno"
    """
    return "_".join(slugify(p) for p in parts if p)


def is_valid_slug(slug: str) -> bool:
    """True when ``slug`` only contains lowercase letters, digits, '-' and '_'."""
    return bool(re.fullmatch(r"[a-z0-9\-_]+", slug or ""))
