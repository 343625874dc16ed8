"""Tests for the store-wide RankingEngine run."""

import json

import pytest

from charadex.ranking.engine import RANKING_FILE, RankingEngine
from tests.conftest import make_character, make_work


def _add_work(store, work_type, work_id, title, characters, **metadata):
    store.upsert_work(work_type, work_id, make_work(work_id, title, work_type, **metadata))
    if characters is not None:
        store.upsert_characters(work_type, work_id, characters)


class TestSingleWork:
    def test_sole_character_is_legendary(self, store, data_dir):
        _add_work(store, "anime", "solo", "Solo", [make_character("hero", "protagonist")], popularity=100, score=100)

        snapshot = RankingEngine(data_dir, store).run()

        assert snapshot.total_characters == 1
        [hero] = snapshot.characters
        assert hero.rarity == "legendary"
        assert hero.rank == 1
        # 0.65 base times the capped lead scale factor
        assert hero.score == pytest.approx(0.65 * 1.15)
        assert snapshot.distribution == {"legendary": 1, "epic": 0, "rare": 0, "uncommon": 0, "common": 0}

    def test_tiers_written_back(self, store, data_dir):
        _add_work(store, "anime", "solo", "Solo", [make_character("hero", "protagonist")], popularity=100, score=100)
        RankingEngine(data_dir, store).run()

        [hero] = store.get_characters("anime", "solo")["characters"]
        assert hero["rarity"] == "legendary"
        assert hero["score"] == pytest.approx(0.7475)

    def test_snapshot_file(self, store, data_dir):
        _add_work(store, "game", "portal", "Portal", [make_character("glados", "antagonist")], popularity=5, score=4.5)
        RankingEngine(data_dir, store).run()

        data = json.loads((data_dir / RANKING_FILE).read_text())
        assert data["total_characters"] == 1
        assert data["characters"][0]["workId"] == "portal"
        assert data["characters"][0]["workType"] == "game"
        assert data["generated_at"]


class TestStoreWide:
    @pytest.fixture
    def populated(self, store):
        _add_work(store, "anime", "big", "Big Show", [
            make_character("lead", "protagonist"),
            make_character("pal", "supporting"),
            make_character("extra", "minor"),
        ], popularity=1000, score=90, episodes=24)
        _add_work(store, "anime", "small", "Small Show", [
            make_character("small-lead", "protagonist"),
            make_character("small-extra", "other"),
        ], popularity=10, score=60, episodes=12)
        return store

    def test_ranks_are_dense_and_sorted(self, populated, data_dir):
        snapshot = RankingEngine(data_dir, populated).run()
        scores = [c.score for c in snapshot.characters]
        assert scores == sorted(scores, reverse=True)
        assert [c.rank for c in snapshot.characters] == list(range(1, 6))
        assert snapshot.characters[0].id == "lead"
        assert sum(snapshot.distribution.values()) == 5

    def test_rerun_is_stable(self, populated, data_dir):
        first = RankingEngine(data_dir, populated).run()
        second = RankingEngine(data_dir, populated).run()
        assert [(c.id, c.rank, c.rarity, c.score) for c in first.characters] == \
            [(c.id, c.rank, c.rarity, c.score) for c in second.characters]

    def test_consolidation_drops_less_popular_version(self, store, data_dir):
        _add_work(store, "anime", "show", "Show", [make_character("a", "protagonist")], popularity=100, score=80)
        _add_work(store, "anime", "show-season-2", "Show Season 2", [make_character("b", "protagonist")], popularity=50, score=80)

        snapshot = RankingEngine(data_dir, store).run()

        assert [c.workId for c in snapshot.characters] == ["show"]
        [b] = store.get_characters("anime", "show-season-2")["characters"]
        assert "rarity" not in b

    def test_work_without_characters_is_skipped(self, store, data_dir):
        _add_work(store, "anime", "empty", "Empty", None, popularity=1)
        _add_work(store, "anime", "full", "Full", [make_character("x", "protagonist")], popularity=2)
        snapshot = RankingEngine(data_dir, store).run()
        assert [c.id for c in snapshot.characters] == ["x"]

    def test_unreadable_work_is_skipped(self, store, data_dir):
        _add_work(store, "anime", "ok", "Ok", [make_character("x", "protagonist")], popularity=2)
        broken = data_dir / "anime" / "broken"
        broken.mkdir(parents=True)
        (broken / "info.json").write_text("{broken")

        snapshot = RankingEngine(data_dir, store).run()
        assert [c.workId for c in snapshot.characters] == ["ok"]

    def test_empty_store(self, data_dir):
        snapshot = RankingEngine(data_dir).run()
        assert snapshot.total_characters == 0
        assert snapshot.characters == []
