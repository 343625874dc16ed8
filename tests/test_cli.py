"""Smoke tests for the command line entry point."""

import asyncio
import json
import os
import signal
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from charadex import cli
from charadex.config import Config
from charadex.core import crawl_state
from charadex.core.crawl_queue import CrawlQueue
from charadex.db.models import CrawlState, QueueEntry
from charadex.enums import WorkType
from tests.conftest import FakeClock, anilist_media, make_character, make_work


@pytest.fixture
def cli_data_dir(monkeypatch, data_dir):
    monkeypatch.setattr(Config, "DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def populated(cli_data_dir, store):
    store.upsert_work("anime", "bebop", make_work("bebop", "Cowboy Bebop", popularity=5, score=70))
    store.upsert_characters("anime", "bebop", [
        make_character("spike", "protagonist", alt_names=["Swimming Bird"]),
        make_character("jet", "supporting", tags=["pilot"]),
    ])
    return cli_data_dir


class SignallingImporter:
    """Imports instantly, but sends SIGTERM to this process during the first import."""

    client = None

    def __init__(self):
        self.imported = []

    async def import_work(self, criteria, character_limit=None, skip_characters=False):
        self.imported.append(criteria.id)
        if len(self.imported) == 1:
            os.kill(os.getpid(), signal.SIGTERM)
            # Give the loop a turn to dispatch the handler
            await asyncio.sleep(0.05)
        return {
            "success": True,
            "work": {"id": f"work-{criteria.id}", "type": "anime", "title": f"Work {criteria.id}"},
            "characters": {"added": 1, "updated": 0, "total": 1},
        }


class TestParser:
    def test_import_requires_a_target(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["import"])

    def test_crawl_defaults(self):
        args = cli.build_parser().parse_args(["crawl", "--type", "manga", "--continue"])
        assert args.type == "manga"
        assert args.max == 50
        assert args.continue_queue is True
        assert args.handler is cli.cmd_crawl

    def test_work_ref(self):
        args = cli.build_parser().parse_args(["update", "game/the-witcher-3_2"])
        assert args.work == ("game", "the-witcher-3_2")

    @pytest.mark.parametrize("value", ["anime", "anime/", "film/akira", "anime/Cowboy Bebop"])
    def test_work_ref_rejects(self, value):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["update", value])

    def test_update_without_work_means_all(self):
        assert cli.build_parser().parse_args(["update"]).work is None


class TestCommands:
    def test_rank_and_index(self, cli_data_dir, store):
        store.upsert_work("anime", "solo", make_work("solo", "Solo", popularity=5, score=70))
        store.upsert_characters("anime", "solo", [make_character("hero", "protagonist")])

        cli.main(["rank", "--top", "1"])
        cli.main(["index"])

        ranking = json.loads((cli_data_dir / "character-ranking.json").read_text())
        assert ranking["characters"][0]["rarity"] == "legendary"
        assert (cli_data_dir / "anime" / "index.json").exists()

    def test_status_and_clear(self, cli_data_dir):
        cli.main(["status", "--type", "anime"])
        cli.main(["clear-queue", "--type", "anime"])
        assert (cli_data_dir / "crawl-state-anime.json").exists()

    def test_store_error_exits_1(self, cli_data_dir):
        # A directory where the ranking file should go makes the write fail
        (cli_data_dir / "character-ranking.json").mkdir()
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["rank"])
        assert exc_info.value.code == 1

    def test_update_missing_work_exits_1(self, cli_data_dir):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["update", "anime/nope"])
        assert exc_info.value.code == 1

    def test_smart_queue_reset(self, cli_data_dir):
        with patch("charadex.cli.SmartQueueJob") as job_cls:
            cli.main(["smart-queue", "--reset", "--types", "anime"])
        job_cls.return_value.reset.assert_called_once_with()
        job_cls.return_value.run.assert_not_called()

    def test_import_passes_criteria(self, cli_data_dir):
        job = MagicMock()
        job.import_work = AsyncMock(return_value={
            "success": True,
            "work": {"id": "bebop", "type": "anime", "title": "Cowboy Bebop"},
            "characters": {"added": 1, "updated": 0, "total": 1},
            "duration": 0.1,
        })
        with patch("charadex.cli.ImportWorkJob.for_type", return_value=job):
            cli.main(["import", "--id", "1", "--limit", "5"])

        criteria = job.import_work.call_args.args[0]
        assert criteria.id == "1"
        assert job.import_work.call_args.kwargs == {"skip_characters": False, "character_limit": 5}

    def test_lookup_lists_source_matches(self, cli_data_dir, capsys):
        client = MagicMock()
        client.search_multiple_media = AsyncMock(return_value=[
            anilist_media(1, "Cowboy Bebop", format="TV", startDate={"year": 1998}),
        ])
        with patch("charadex.scrapers.registry.create_client", return_value=client):
            cli.main(["lookup", "bebop", "--limit", "3"])

        client.search_multiple_media.assert_awaited_once_with("bebop", WorkType.ANIME, limit=3)
        client.close.assert_called_once_with()
        out = capsys.readouterr().out
        assert "Cowboy Bebop" in out
        assert "1998" in out


class TestStoreCommands:
    def test_search(self, populated, capsys):
        cli.main(["search", "anime/bebop", "swimming"])
        out = capsys.readouterr().out
        assert "1 characters found" in out
        assert "Spike" in out

    def test_search_by_tag(self, populated, capsys):
        cli.main(["search", "anime/bebop", "--tag", "pilot"])
        out = capsys.readouterr().out
        assert "Jet" in out
        assert "Spike" not in out

    def test_stats(self, populated, capsys):
        cli.main(["stats", "anime/bebop"])
        out = capsys.readouterr().out
        assert "Cowboy Bebop" in out
        assert "protagonist: 1" in out

    def test_stats_missing_work_exits_1(self, cli_data_dir):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["stats", "anime/nope"])
        assert exc_info.value.code == 1

    def test_list(self, populated, capsys):
        cli.main(["list"])
        out = capsys.readouterr().out
        assert "ANIME" in out
        assert "Cowboy Bebop" in out

    def test_cache_rebuild_status_clear(self, populated, capsys):
        cache_file = populated / "work-cache.json"

        cli.main(["cache", "rebuild"])
        entries = json.loads(cache_file.read_text())
        # Keyed by source id, as the crawl queue checks it
        assert list(entries) == ["1"]
        assert entries["1"]["title"] == "Cowboy Bebop"
        assert entries["1"]["charactersCount"] == 2

        cli.main(["cache", "status"])
        assert "Works: 1" in capsys.readouterr().out

        cli.main(["cache", "clear"])
        assert json.loads(cache_file.read_text()) == {}


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
class TestCrawlSignals:
    def test_sigterm_finishes_current_item_and_saves(self, cli_data_dir):
        crawl_state.save_state(
            cli_data_dir, "anime",
            CrawlState(queue=[QueueEntry(id=i, title=f"Work {i}") for i in ("1", "2", "3")]),
        )
        importer = SignallingImporter()
        queue = CrawlQueue(cli_data_dir, "anime", importer, delay_between_imports=5.0, sleep=FakeClock().sleep)

        with patch("charadex.cli._crawl_queue", return_value=queue):
            cli.main(["crawl", "--continue", "--max", "3"])

        assert importer.imported == ["1"]
        assert queue.stop_requested
        state = crawl_state.load_state(cli_data_dir, "anime")
        assert state.processed_works == {"1"}
        assert [e.id for e in state.queue] == ["2", "3"]
        assert state.stats.total_processed == 1
