"""Tests for the engine's round lifecycle and recompute cascade."""

import pytest

from tests.conftest import make_pageant, score, score_final, score_prelim, totals

from tally.errors import (
    ConfigurationError, RejectReason, UnresolvedDependencyError, ValidationError,
)
from tally.models import RoundStatus


class TestLifecycle:
    def test_open_round(self, pageant):
        rnd = pageant.open_round("prelim", ["A", "B"])
        assert rnd.status is RoundStatus.ONGOING
        assert rnd.active_contestants == ["A", "B"]

    def test_open_with_unknown_contestant(self, pageant):
        with pytest.raises(ConfigurationError, match="Z"):
            pageant.open_round("prelim", ["A", "Z"])
        assert pageant.get_round("prelim").status is RoundStatus.PENDING

    def test_unknown_round(self, pageant):
        with pytest.raises(KeyError):
            pageant.open_round("semi", ["A"])

    def test_pending_round_rejects_scores(self, pageant):
        with pytest.raises(ValidationError) as exc_info:
            score(pageant, "prelim", "J1", "A", 80, 80, 80)
        assert exc_info.value.reason is RejectReason.ROUND_NOT_OPEN

    def test_submit_does_not_recompute(self, pageant):
        pageant.open_round("prelim", ["A"])
        score(pageant, "prelim", "J1", "A", 80, 80, 80)
        assert pageant.round_entries("prelim") == []
        assert not pageant.is_current("prelim")

    def test_close_round_computes_and_finishes(self, pageant):
        score_prelim(pageant)
        assert pageant.close_round("prelim") == []
        assert pageant.get_round("prelim").is_finished
        assert totals(pageant.round_entries("prelim"))["B"] == (82, 1)

    def test_finished_round_rejects_scores(self, pageant):
        score_prelim(pageant)
        pageant.close_round("prelim")
        with pytest.raises(ValidationError) as exc_info:
            score(pageant, "prelim", "J3", "B", 90, 90, 90)
        assert exc_info.value.reason is RejectReason.ROUND_NOT_OPEN

    def test_close_blocked_by_unfinished_source(self, pageant):
        score_prelim(pageant)
        score_final(pageant)
        with pytest.raises(UnresolvedDependencyError):
            pageant.close_round("final")
        assert pageant.get_round("final").status is RoundStatus.ONGOING

    def test_is_fully_scored(self, pageant):
        score_prelim(pageant)
        assert not pageant.is_fully_scored("prelim")
        score(pageant, "prelim", "J3", "B", 80, 80, 80)
        assert pageant.is_fully_scored("prelim")


class TestCascade:
    def test_reopen_reports_dependents(self, scored_pageant):
        dependents = scored_pageant.reopen_round("prelim")
        assert [r.id for r in dependents] == ["final"]
        assert scored_pageant.get_round("prelim").is_open

    def test_correction_flows_into_final(self, scored_pageant):
        scored_pageant.reopen_round("prelim")
        for judge in ("J1", "J2", "J3"):
            score(scored_pageant, "prelim", judge, "A", 90, 90, 90)
        recomputed = scored_pageant.close_round("prelim")

        assert [r.id for r in recomputed] == ["final"]
        assert totals(scored_pageant.round_entries("prelim"))["A"] == (90, 1)
        final = totals(scored_pageant.round_entries("final"))
        assert final["A"] == (180, 1)
        assert scored_pageant.store.get_entry("final", "A", "carry").score == 90

    def test_overall_follows_cascade(self, scored_pageant):
        scored_pageant.reopen_round("prelim")
        for judge in ("J1", "J2", "J3"):
            score(scored_pageant, "prelim", judge, "C", 100, 100, 100)
        scored_pageant.close_round("prelim")
        overall = {e.contestant_id: e.score for e in scored_pageant.overall()}
        assert overall["C"] == 100
        assert overall["A"] == 252


class TestSubmitRound:
    def test_batch_submission_recomputes(self, pageant):
        pageant.open_round("prelim", ["A", "B"])
        entries = pageant.submit_round("prelim", "J1", {
            "A": {"poise": 80, "talent": 90, "intelligence": 70},
            "B": {"poise": 90, "talent": 80, "intelligence": 80},
        })
        assert totals(entries) == {"A": (81, 2), "B": (84, 1)}
        assert pageant.is_current("prelim")

    def test_rejected_batch_writes_nothing(self, pageant):
        pageant.open_round("prelim", ["A", "B"])
        with pytest.raises(ValidationError):
            pageant.submit_round("prelim", "J1", {
                "A": {"poise": 80, "talent": 90, "intelligence": 70},
                "B": {"poise": 90, "talent": 80},
            })
        assert pageant.ledger.raw_scores("prelim") == []
        assert pageant.round_entries("prelim") == []

    def test_recompute_deferred_on_unfinished_source(self, pageant):
        score_prelim(pageant)
        pageant.open_round("final", ["A"])
        assert pageant.submit_round("final", "J1", {"A": {"qa": 90}}) is None
        assert pageant.ledger.values_for("final", "A", "qa") == [90]


class TestCloseGate:
    def test_scores_arriving_during_close_are_rejected(self, pageant, monkeypatch):
        score_prelim(pageant)
        compute = pageant.computer.compute_round_tally
        late = []

        def compute_with_late_score(rnd):
            try:
                score(pageant, "prelim", "J3", "B", 90, 90, 90)
            except ValidationError as e:
                late.append(e.reason)
            return compute(rnd)

        monkeypatch.setattr(pageant.computer, "compute_round_tally", compute_with_late_score)
        pageant.close_round("prelim")

        assert late == [RejectReason.ROUND_NOT_OPEN]
        assert pageant.is_current("prelim")
        assert totals(pageant.round_entries("prelim"))["B"] == (82, 1)

    def test_failed_close_reopens_for_scoring(self, pageant):
        score_prelim(pageant)
        score_final(pageant)
        with pytest.raises(UnresolvedDependencyError):
            pageant.close_round("final")
        score(pageant, "final", "J1", "A", 95)
        assert pageant.ledger.values_for("final", "A", "qa") == [95, 90, 90]


class TestEngineArguments:
    def test_set_active_rejects_unknown_contestant(self, pageant):
        pageant.open_round("prelim", ["A", "B"])
        with pytest.raises(ConfigurationError, match="Z"):
            pageant.set_active_contestants("prelim", ["A", "Z"])
        assert pageant.get_round("prelim").active_contestants == ["A", "B"]

    def test_zero_winners(self, scored_pageant):
        assert scored_pageant.winners(0) == []
