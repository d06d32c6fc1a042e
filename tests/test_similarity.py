"""類似度・重なり検出のテスト"""

import pytest

from relay_scribe.domain import SimilarityMetric
from relay_scribe.infrastructure.text import (
    get_similarity_function,
    jaccard_similarity,
    levenshtein_similarity,
    longest_overlap,
)
from relay_scribe.infrastructure.text.similarity import (
    is_contained_duplicate,
    levenshtein_distance,
)


class TestJaccard:
    """Jaccard係数のテスト"""

    def test_identical_is_one(self) -> None:
        assert jaccard_similarity("a b c", "a b c") == 1.0

    def test_word_order_ignored(self) -> None:
        assert jaccard_similarity("a b c", "c b a") == 1.0

    def test_partial_overlap(self) -> None:
        assert jaccard_similarity(
            "alpha beta gamma delta epsilon", "delta gamma beta alpha"
        ) == pytest.approx(0.8)

    def test_symmetric(self) -> None:
        a, b = "one two three", "two three four five"
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)

    def test_both_empty(self) -> None:
        assert jaccard_similarity("", "") == 1.0


class TestLevenshtein:
    """編集距離のテスト"""

    @pytest.mark.parametrize(
        ("a", "b", "distance"),
        [("kitten", "sitting", 3), ("", "abc", 3), ("same", "same", 0), ("flaw", "lawn", 2)],
    )
    def test_distance(self, a: str, b: str, distance: int) -> None:
        assert levenshtein_distance(a, b) == distance
        assert levenshtein_distance(b, a) == distance

    def test_similarity_range(self) -> None:
        assert levenshtein_similarity("abc", "abc") == 1.0
        assert levenshtein_similarity("abc", "xyz") == 0.0
        assert levenshtein_similarity("", "") == 1.0


class TestFactory:
    def test_returns_configured_metric(self) -> None:
        assert get_similarity_function(SimilarityMetric.JACCARD) is jaccard_similarity
        assert get_similarity_function(SimilarityMetric.LEVENSHTEIN) is levenshtein_similarity


class TestLongestOverlap:
    """末尾・先頭の重なり検出のテスト"""

    def test_word_overlap(self) -> None:
        assert longest_overlap("the quick brown", "brown fox jumps", 3) == 5

    def test_longest_match_wins(self) -> None:
        assert longest_overlap("a b a b", "a b a b c", 3) == 7

    def test_below_minimum_is_zero(self) -> None:
        assert longest_overlap("the cat", "at home", 3) == 0

    def test_no_overlap(self) -> None:
        assert longest_overlap("hello", "world", 3) == 0


class TestContainedDuplicate:
    def test_long_substring_is_duplicate(self) -> None:
        assert is_contained_duplicate(
            "quick brown fox", "the quick brown fox jumps", 10
        )

    def test_short_substring_is_not(self) -> None:
        assert not is_contained_duplicate("brown fox", "the quick brown fox jumps", 10)
