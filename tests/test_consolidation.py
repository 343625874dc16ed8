"""Tests for base-title normalization and duplicate-work exclusion."""

import pytest

from charadex.ranking.consolidation import WorkVersion, find_excluded_works, normalize_base_title


class TestNormalizeBaseTitle:
    @pytest.mark.parametrize("title,expected", [
        ("Show", "Show"),
        ("Show Season 2", "Show"),
        ("Attack on Titan Final Season", "Attack on Titan"),
        ("Attack on Titan: Final Season", "Attack on Titan"),
        ("Demon Slayer: Kimetsu no Yaiba Entertainment District Arc", "Demon Slayer: Kimetsu no Yaiba"),
        ("Demon Slayer -Kimetsu no Yaiba-", "Demon Slayer"),
        ("Kimetsu no Yaiba Mugen Train Arc", "Kimetsu no Yaiba"),
        ("Overlord III", "Overlord"),
        ("Made in Abyss II", "Made in Abyss"),
        ("Haikyu!! 2nd Season", "Haikyu!!"),
    ])
    def test_patterns(self, title, expected):
        assert normalize_base_title(title) == expected

    def test_empty(self):
        assert normalize_base_title("") == ""


class TestFindExcludedWorks:
    def test_less_popular_versions_excluded(self):
        versions = [
            WorkVersion("anime", "show", "Show", 100),
            WorkVersion("anime", "show-season-2", "Show Season 2", 50),
            WorkVersion("anime", "other", "Other", 10),
        ]
        assert find_excluded_works(versions) == {("anime", "show-season-2")}

    def test_most_popular_sequel_wins(self):
        versions = [
            WorkVersion("anime", "show", "Show", 10),
            WorkVersion("anime", "show-2", "Show 2", 90),
        ]
        assert find_excluded_works(versions) == {("anime", "show")}

    def test_groups_are_per_type(self):
        versions = [
            WorkVersion("anime", "show", "Show", 100),
            WorkVersion("manga", "show", "Show", 50),
        ]
        assert find_excluded_works(versions) == set()

    def test_tie_keeps_first(self):
        versions = [
            WorkVersion("anime", "a", "Show Season 1", 5),
            WorkVersion("anime", "b", "Show Season 2", 5),
        ]
        assert find_excluded_works(versions) == {("anime", "b")}

    def test_custom_matcher(self):
        class FirstWord:
            def base_title(self, title):
                return title.split()[0]

        versions = [
            WorkVersion("game", "zelda-1", "Zelda Breath", 1),
            WorkVersion("game", "zelda-2", "Zelda Tears", 2),
        ]
        assert find_excluded_works(versions, FirstWord()) == {("game", "zelda-1")}
