"""Tests for per-type and global crawl state files."""

import json

from charadex.core import crawl_state
from charadex.db.models import CrawlState, CrawlStats, QueueEntry


def _state(ids, processed=0, characters=0, last_run=None, queue=()):
    return CrawlState(
        processed_works=set(ids),
        queue=[QueueEntry(id=q) for q in queue],
        stats=CrawlStats(total_processed=processed, total_characters=characters, last_run=last_run),
    )


class TestReadState:
    def test_missing_file_is_fresh(self, data_dir):
        state = crawl_state.load_state(data_dir, "anime")
        assert state.processed_works == set()
        assert state.queue == []

    def test_corrupt_file_is_fresh(self, data_dir):
        crawl_state.state_path(data_dir, "anime").write_text("{oops")
        assert crawl_state.load_state(data_dir, "anime").processed_works == set()

    def test_wrong_shape_is_fresh(self, data_dir):
        crawl_state.state_path(data_dir, "anime").write_text(json.dumps({"queue": "not a list"}))
        assert crawl_state.load_state(data_dir, "anime").queue == []

    def test_numeric_ids_become_strings(self, data_dir):
        crawl_state.state_path(data_dir, "anime").write_text(json.dumps({
            "processedWorks": [1, 2],
            "queue": [{"id": 3, "title": "Three"}],
        }))
        state = crawl_state.load_state(data_dir, "anime")
        assert state.processed_works == {"1", "2"}
        assert state.queue[0].id == "3"


class TestMergeStates:
    def test_union_and_max(self):
        base = _state({"1", "2"}, processed=5, characters=100, last_run="2024-01-01T00:00:00.000Z", queue=["9"])
        incoming = _state({"2", "3"}, processed=3, characters=200, last_run="2024-02-01T00:00:00.000Z")
        merged = crawl_state.merge_states(base, incoming)
        assert merged.processed_works == {"1", "2", "3"}
        assert merged.stats.total_processed == 5
        assert merged.stats.total_characters == 200
        assert merged.stats.last_run == "2024-02-01T00:00:00.000Z"
        assert [e.id for e in merged.queue] == ["9"]


class TestSaveState:
    def test_writes_per_type_and_global(self, data_dir):
        crawl_state.save_state(data_dir, "anime", _state({"1"}, processed=1))
        crawl_state.save_state(data_dir, "manga", _state({"50"}, processed=4))

        anime = json.loads(crawl_state.state_path(data_dir, "anime").read_text())
        assert anime["processedWorks"] == ["1"]
        assert anime["stats"]["lastRun"]

        merged = crawl_state.read_state(crawl_state.global_state_path(data_dir))
        assert merged.processed_works == {"1", "50"}
        assert merged.stats.total_processed == 4

    def test_global_never_loses_ids(self, data_dir):
        crawl_state.save_state(data_dir, "anime", _state({"1", "2"}))
        # A later save with fewer ids for the same type
        crawl_state.save_state(data_dir, "anime", _state({"3"}))
        merged = crawl_state.read_state(crawl_state.global_state_path(data_dir))
        assert merged.processed_works == {"1", "2", "3"}

    def test_on_disk_keys_are_camel_case(self, data_dir):
        crawl_state.save_state(data_dir, "game", _state({"b", "a"}, queue=["c"]))
        data = json.loads(crawl_state.state_path(data_dir, "game").read_text())
        assert set(data) >= {"processedWorks", "queue", "stats", "lastCrawled"}
        assert data["processedWorks"] == ["a", "b"]
        assert data["queue"][0]["id"] == "c"
