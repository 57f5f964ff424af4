"""Tests for tie-aware fractional ranking."""

from decimal import Decimal

from tests.conftest import D

from tally.ranking import fractional_ranks, rank_items, rank_mapping


def ranks_of(*scores):
    return fractional_ranks([D(s) for s in scores])


class TestFractionalRanks:
    def test_no_ties(self):
        assert ranks_of(70, 90, 80) == [3, 1, 2]

    def test_tie_in_middle(self):
        assert ranks_of(90, 85, 85, 70) == [1, D("2.5"), D("2.5"), 4]

    def test_all_tied(self):
        assert ranks_of(50, 50, 50) == [2, 2, 2]

    def test_two_tie_groups(self):
        assert ranks_of(10, 10, 5, 5) == [D("1.5"), D("1.5"), D("3.5"), D("3.5")]

    def test_tie_at_end(self):
        assert ranks_of(9, 4, 4, 4) == [1, 3, 3, 3]

    def test_single_score(self):
        assert ranks_of(42) == [1]

    def test_empty(self):
        assert fractional_ranks([]) == []

    def test_ranks_align_with_input_order(self):
        assert ranks_of(1, 3, 2) == [3, 1, 2]

    def test_decimal_precision_distinguishes_scores(self):
        """Scores that differ only in the fourth place are not tied."""
        assert ranks_of("81.0001", "81.0000") == [1, 2]

    def test_rank_sum_is_preserved(self):
        """Ties never change the sum of ranks: n(n+1)/2."""
        ranks = ranks_of(5, 5, 3, 3, 3, 1, 0)
        assert sum(ranks) == 28

    def test_ranks_are_decimal(self):
        assert all(isinstance(r, Decimal) for r in ranks_of(3, 3, 1))


class TestRankItems:
    def test_best_first(self):
        ranked = rank_items(["b", "a", "c"], key=lambda k: {"a": D(3), "b": D(2), "c": D(1)}[k])
        assert ranked == [("a", 1), ("b", 2), ("c", 3)]

    def test_equal_keys_keep_input_order(self):
        ranked = rank_items(["x", "y", "z"], key=lambda k: D(7))
        assert [item for item, _ in ranked] == ["x", "y", "z"]
        assert [rank for _, rank in ranked] == [2, 2, 2]


class TestRankMapping:
    def test_mapping(self):
        ranks = rank_mapping({"A": D(90), "B": D(85), "C": D(85), "D": D(70)})
        assert ranks == {"A": 1, "B": D("2.5"), "C": D("2.5"), "D": 4}

    def test_negative_scores(self):
        ranks = rank_mapping({"A": D(-2), "B": D(-5)})
        assert ranks == {"A": 1, "B": 2}
