"""
Source selection: ``Source`` enum -> client class + normalizer module.

Clients are built from ``Config`` defaults unless overrides are given,
which is how tests inject fake sessions and sleeps.
"""

from types import ModuleType
from typing import Optional

from ..config import Config
from ..enums import DEFAULT_SOURCE, Source, WorkType
from ..normalizers import anilist as anilist_normalizer
from ..normalizers import jikan as jikan_normalizer
from ..normalizers import rawg as rawg_normalizer
from .anilist import AniListClient
from .base import SourceClient
from .jikan import JikanClient
from .rawg import RawgClient

CLIENTS: dict[Source, type[SourceClient]] = {
    Source.ANILIST: AniListClient,
    Source.JIKAN: JikanClient,
    Source.RAWG: RawgClient,
}

NORMALIZERS: dict[Source, ModuleType] = {
    Source.ANILIST: anilist_normalizer,
    Source.JIKAN: jikan_normalizer,
    Source.RAWG: rawg_normalizer,
}


def resolve_source(work_type: WorkType | str, source: Optional[Source | str] = None) -> Source:
    """Explicit source wins; otherwise the default for the work type."""
    if source:
        return source if isinstance(source, Source) else Source.parse(source)
    return DEFAULT_SOURCE[WorkType(work_type)]


def _config_kwargs(source: Source) -> dict:
    kwargs: dict = {"timeout": Config.HTTP_TIMEOUT}
    if source == Source.ANILIST:
        kwargs.update(
            requests_per_minute=Config.ANILIST_REQUESTS_PER_MINUTE,
            safe_mode=Config.ANILIST_SAFE_MODE,
            delay_between_pages=Config.DELAY_BETWEEN_PAGES,
        )
    elif source == Source.JIKAN:
        kwargs["requests_per_second"] = Config.JIKAN_REQUESTS_PER_SECOND
    elif source == Source.RAWG:
        kwargs.update(api_key=Config.RAWG_API_KEY, requests_per_minute=Config.RAWG_REQUESTS_PER_MINUTE)
    return kwargs


def create_client(source: Source | str, **overrides) -> SourceClient:
    source = source if isinstance(source, Source) else Source.parse(source)
    kwargs = _config_kwargs(source)
    kwargs.update(overrides)
    return CLIENTS[source](**kwargs)


def get_normalizer(source: Source | str) -> ModuleType:
    source = source if isinstance(source, Source) else Source.parse(source)
    return NORMALIZERS[source]
