"""
Shared test fixtures for the charadex test suite.

Provides:
- FakeSession / FakeResponse: scripted stand-ins for requests.Session
- FakeClock: a monotonic clock whose async sleep advances time
- Data directory fixtures backed by tmp_path
- Record builders for works and characters
"""

import os
from collections import deque
from typing import Any

import pytest

# Keep a developer's .env from leaking into tests
os.environ.setdefault("RAWG_API_KEY", "test-key")

from charadex.db.store import CatalogStore
from charadex.enums import Source
from charadex.scrapers.cache import WorkCache
from charadex.scrapers.errors import WorkNotFoundError

# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------

NOT_JSON = object()


class FakeResponse:
    """Minimal requests.Response: status, headers, json()."""

    def __init__(self, payload: Any = None, status_code: int = 200, headers: dict | None = None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is NOT_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Returns (or raises) scripted items in order and records every call."""

    def __init__(self, responses=()):
        self.responses = deque(responses)
        self.calls: list[dict] = []
        self.headers: dict = {}
        self.closed = False

    def queue(self, *items):
        self.responses.extend(items)

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.responses.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeClock:
    """Callable clock; ``sleep`` records the delay and advances time."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def make_work(work_id: str, title: str | None = None, work_type: str = "anime", **metadata) -> dict:
    return {
        "id": work_id,
        "type": work_type,
        "title": title or work_id.replace("-", " ").title(),
        "source": "AniList",
        "source_id": "1",
        "metadata": metadata,
    }


def make_character(char_id: str, role: str = "supporting", **fields) -> dict:
    return {"id": char_id, "name": char_id.title(), "role": role, **fields}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir):
    return CatalogStore(data_dir)


@pytest.fixture
def cache(data_dir):
    return WorkCache.for_data_dir(data_dir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_session():
    return FakeSession()


# ---------------------------------------------------------------------------
# Source client stub
# ---------------------------------------------------------------------------

def anilist_media(media_id: int = 1, title: str = "Cowboy Bebop", **fields) -> dict:
    return {
        "id": media_id,
        "type": "ANIME",
        "title": {"english": title, "romaji": title},
        "averageScore": 86,
        "popularity": 1000,
        "episodes": 26,
        **fields,
    }


def anilist_edge(char_id: int, full_name: str, role: str = "MAIN") -> dict:
    return {"role": role, "node": {"id": char_id, "name": {"full": full_name}}}


class FakeSourceClient:
    """Serves AniList-shaped records from dicts; ids missing from ``media`` raise ``error``."""

    source = Source.ANILIST
    display_name = "Fake"

    def __init__(self, media=None, characters=None, error: Exception | None = None):
        self.media = media or {}
        self.characters = characters or {}
        self.error = error
        self.searches = []
        self.character_requests = []

    async def search_media(self, criteria):
        self.searches.append(criteria)
        key = str(criteria.id or criteria.search)
        if key not in self.media:
            raise self.error or WorkNotFoundError(f"no media {key}")
        return self.media[key]

    async def collect_characters(self, source_id, limit=None, on_progress=None):
        self.character_requests.append((str(source_id), limit))
        edges = self.characters.get(str(source_id), [])
        if on_progress:
            on_progress({"page": 1, "total": len(edges), "collected": len(edges)})
        return edges

    def close(self):
        pass
