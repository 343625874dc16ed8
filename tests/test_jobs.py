"""Tests for the import and update jobs."""

import asyncio

import pytest

from charadex.core.importer import ImportWorkJob
from charadex.core.updater import UpdateWorkJob
from charadex.enums import Source
from charadex.scrapers.base import SearchCriteria
from charadex.scrapers.errors import CatalogError, SourceHTTPError, WorkNotFoundError
from tests.conftest import FakeClock, FakeSourceClient, anilist_edge, anilist_media


@pytest.fixture
def bebop_client():
    return FakeSourceClient(
        media={"1": anilist_media(1, "Cowboy Bebop"), "bebop": anilist_media(1, "Cowboy Bebop")},
        characters={"1": [
            anilist_edge(10, "Spike Spiegel"),
            anilist_edge(11, "Jet Black", "SUPPORTING"),
            anilist_edge(12, "Ein", "BACKGROUND"),
        ]},
    )


class TestImportWork:
    def test_imports_work_and_characters(self, store, bebop_client):
        job = ImportWorkJob(store, bebop_client)
        result = asyncio.run(job.import_work(SearchCriteria(id=1)))

        assert result["success"] is True
        assert result["work"] == {"id": "cowboy-bebop", "type": "anime", "title": "Cowboy Bebop"}
        assert result["characters"] == {"added": 3, "updated": 0, "total": 3}
        assert store.get_work("anime", "cowboy-bebop")["metadata"]["score"] == 86
        roles = {c["id"]: c["role"] for c in store.get_characters("anime", "cowboy-bebop")["characters"]}
        assert roles == {"spike-spiegel": "protagonist", "jet-black": "supporting", "ein": "minor"}

    def test_reimport_is_idempotent(self, store, bebop_client):
        job = ImportWorkJob(store, bebop_client)
        asyncio.run(job.import_work(SearchCriteria(id=1)))
        result = asyncio.run(job.import_work(SearchCriteria(id=1)))
        assert result["characters"] == {"added": 0, "updated": 3, "total": 3}

    def test_character_limit(self, store, bebop_client):
        job = ImportWorkJob(store, bebop_client)
        result = asyncio.run(job.import_work(SearchCriteria(id=1), character_limit=2))
        assert result["characters"]["total"] == 2
        assert bebop_client.character_requests == [("1", 2)]

    def test_skip_characters(self, store, bebop_client):
        job = ImportWorkJob(store, bebop_client)
        result = asyncio.run(job.import_work(SearchCriteria(id=1), skip_characters=True))
        assert result["characters"] is None
        assert store.get_characters("anime", "cowboy-bebop") is None

    def test_errors_propagate(self, store):
        job = ImportWorkJob(store, FakeSourceClient(error=SourceHTTPError(500)))
        with pytest.raises(SourceHTTPError):
            asyncio.run(job.import_work(SearchCriteria(id=99)))


class TestImportBatch:
    def test_failure_isolated_and_no_trailing_sleep(self, store, bebop_client):
        clock = FakeClock()
        job = ImportWorkJob(store, bebop_client, sleep=clock.sleep)

        results = asyncio.run(job.import_batch(
            [SearchCriteria(id=1), SearchCriteria(search="missing"), SearchCriteria(search="bebop")],
            delay_between=3.0,
        ))

        assert [r["success"] for r in results] == [True, False, True]
        assert "no media" in results[1]["error"]
        assert clock.sleeps == [3.0, 3.0]


class TestUpdateWork:
    def _job(self, store, client, **kwargs):
        factories = []

        def factory(source):
            factories.append(source)
            return client

        job = UpdateWorkJob(store, client_factory=factory, **kwargs)
        return job, factories

    def test_keeps_stored_id(self, store, bebop_client):
        store.upsert_work("anime", "bebop", {
            "id": "bebop", "type": "anime", "title": "Bebop", "source": "AniList", "source_id": "1",
        })
        job, factories = self._job(store, bebop_client)

        result = asyncio.run(job.update_work("anime", "bebop"))

        assert result["work"]["id"] == "bebop"
        assert result["work"]["title"] == "Cowboy Bebop"
        assert result["characters"]["total"] == 3
        assert factories == [Source.ANILIST]
        assert store.get_work("anime", "cowboy-bebop") is None

    def test_missing_work(self, store, bebop_client):
        job, _ = self._job(store, bebop_client)
        with pytest.raises(WorkNotFoundError) as exc_info:
            asyncio.run(job.update_work("anime", "nope"))
        assert isinstance(exc_info.value, CatalogError)
        assert bebop_client.searches == []

    def test_without_characters(self, store, bebop_client):
        store.upsert_work("anime", "bebop", {"id": "bebop", "type": "anime", "title": "Bebop", "source": "AniList", "source_id": "1"})
        job, _ = self._job(store, bebop_client, update_characters=False)
        result = asyncio.run(job.update_work("anime", "bebop"))
        assert result["characters"] is None
        assert bebop_client.character_requests == []

    def test_update_all_reports_errors(self, store, bebop_client):
        store.upsert_work("anime", "bebop", {"id": "bebop", "type": "anime", "title": "Bebop", "source": "AniList", "source_id": "1"})
        store.upsert_work("anime", "gone", {"id": "gone", "type": "anime", "title": "Gone", "source": "AniList", "source_id": "404"})
        job, factories = self._job(store, bebop_client)

        report = asyncio.run(job.update_all())

        assert report["total"] == 2
        assert report["updated"] == 1
        assert report["errors"] == 1
        assert {d["work_id"]: d["success"] for d in report["details"]} == {"bebop": True, "gone": False}
        # One client per source for the whole run
        assert factories == [Source.ANILIST]
