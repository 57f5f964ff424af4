"""Tests for the averaging, pointing and objective regimes."""

import pytest

from tests.conftest import D, make_criterion

from tally.models import Criterion
from tally.regimes import get_all_regimes, get_regime_class
from tally.regimes.averaging import AveragingRegime
from tally.regimes.base import mean
from tally.regimes.objective import CATEGORIES, ObjectiveRegime, PointRule
from tally.regimes.pointing import PointingRegime


class TestRegistry:
    def test_lookup_by_key(self):
        assert get_regime_class("averaging") is AveragingRegime
        assert get_regime_class("pointing") is PointingRegime
        assert get_regime_class("objective") is ObjectiveRegime

    def test_unknown_key_lists_known_regimes(self):
        with pytest.raises(KeyError, match="averaging"):
            get_regime_class("median")

    def test_all_regimes(self):
        keys = {cls.key for cls in get_all_regimes()}
        assert {"averaging", "pointing", "objective"} <= keys


class TestMean:
    def test_mean(self):
        assert mean([D(85), D(80), D(80), D(75)]) == 80

    def test_single_value(self):
        assert mean([D(70)]) == 70


class TestAveragingRegime:
    def setup_method(self):
        self.regime = AveragingRegime()
        self.poise = make_criterion("poise", "r1", weight=40)
        self.talent = make_criterion("talent", "r1", weight=35)
        self.intelligence = make_criterion("intelligence", "r1", weight=25)

    def test_name(self):
        assert self.regime.name == "Averaging"
        assert self.regime.emits_breakdown

    def test_weighted_average(self):
        assert self.regime.criterion_score([D(80), D(90), D(70)], self.poise) == 32

    def test_divisor_is_submitted_judges(self):
        """Two submitted values average over two, not the roster size."""
        assert self.regime.criterion_score([D(90), D(80)], self.poise) == 34

    def test_weighted_sum_example(self):
        scores = [
            self.regime.criterion_score([D(80)], self.poise),
            self.regime.criterion_score([D(90)], self.talent),
            self.regime.criterion_score([D(70)], self.intelligence),
        ]
        assert sum(scores) == 81

    def test_judge_contribution(self):
        values = {"poise": D(80), "talent": D(90), "intelligence": D(70)}
        criteria = [self.poise, self.talent, self.intelligence]
        assert self.regime.judge_contribution(values, criteria) == 81

    def test_judge_contribution_skips_missing_criteria(self):
        values = {"poise": D(50)}
        assert self.regime.judge_contribution(values, [self.poise, self.talent]) == 20

    def test_to_dict(self):
        assert self.regime.to_dict() == {"regime": "averaging"}


class TestPointingRegime:
    def setup_method(self):
        self.regime = PointingRegime()
        self.x = make_criterion("x", "r1", weight=30, max_points=10)
        self.y = make_criterion("y", "r1", weight=70, max_points=10)

    def test_name(self):
        assert self.regime.name == "Pointing"

    def test_sums_values_across_judges(self):
        """J1 gives 5 and 7, J2 gives 3 and 4: total 19."""
        x = self.regime.criterion_score([D(5), D(3)], self.x)
        y = self.regime.criterion_score([D(7), D(4)], self.y)
        assert x + y == 19

    def test_weights_ignored(self):
        assert self.regime.criterion_score([D(5)], self.x) == 5
        assert self.regime.criterion_score([D(5)], self.y) == 5

    def test_judge_contribution(self):
        assert self.regime.judge_contribution({"x": D(5), "y": D(7)}, [self.x, self.y]) == 12


class TestPointRule:
    def test_defaults(self):
        rule = PointRule()
        assert rule.points_for("correct") == 1
        assert rule.points_for("wrong") == 0

    def test_penalties_are_subtracted(self):
        rule = PointRule(skip_penalty=D(1), violation_penalty=D(5))
        assert rule.points_for("skip") == -1
        assert rule.points_for("violation") == -5

    def test_unknown_category(self):
        with pytest.raises(KeyError):
            PointRule().points_for("partial")


class TestObjectiveRegime:
    def setup_method(self):
        self.rule = PointRule(
            correct=D(2), wrong=D(0), bonus=D(3), skip_penalty=D(1), violation_penalty=D(5)
        )
        self.regime = ObjectiveRegime(rule=self.rule, total_items=20)
        self.criteria = self.regime.criteria_for("quiz")

    def test_name(self):
        assert self.regime.name == "Objective Right/Wrong"

    def test_no_breakdown(self):
        assert not self.regime.emits_breakdown

    def test_criteria_for_round(self):
        assert [c.name for c in self.criteria] == list(CATEGORIES)
        assert [c.id for c in self.criteria] == [
            "quiz.correct", "quiz.wrong", "quiz.bonus", "quiz.skip", "quiz.violation",
        ]
        assert all(c.round_id == "quiz" for c in self.criteria)
        assert all(c.min_points == 0 and c.max_points == 20 for c in self.criteria)

    def test_criteria_without_item_count_are_unbounded_above(self):
        criteria = ObjectiveRegime().criteria_for("quiz")
        assert all(c.max_points is None for c in criteria)

    def test_round_total(self):
        """10 correct, 3 wrong, 1 bonus, 2 skipped, 1 violation: 20 + 0 + 3 - 2 - 5."""
        counts = {"correct": 10, "wrong": 3, "bonus": 1, "skip": 2, "violation": 1}
        total = sum(
            self.regime.criterion_score([D(counts[c.name])], c) for c in self.criteria
        )
        assert total == 16

    def test_judge_contribution(self):
        values = {c.id: D(1) for c in self.criteria}
        assert self.regime.judge_contribution(values, self.criteria) == 2 + 0 + 3 - 1 - 5

    def test_to_dict(self):
        data = self.regime.to_dict()
        assert data["regime"] == "objective"
        assert data["total_items"] == 20
        assert data["rule"]["violation_penalty"] == 5

    def test_points_follow_category_not_display_name(self):
        renamed = Criterion(
            id="quiz.bonus", name="Bonus rounds", round_id="quiz",
            min_points=D(0), category="bonus",
        )
        assert self.regime.criterion_score([D(2)], renamed) == 6
