"""Orchestrator: round lifecycle, submissions and recomputation for one event."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from tally.computer import RoundTallyComputer
from tally.config import TallySettings, get_settings
from tally.criteria import CriterionGraph
from tally.errors import ConfigurationError, TallyError, UnresolvedDependencyError
from tally.ledger import ScoreLedger, Submission
from tally.models import ComputedEntry, Event, OverallEntry, Round, RoundStatus
from tally.overall import OverallAggregator, winners
from tally.presenter import RoundView, build_round_view
from tally.store import TallyStore

logger = logging.getLogger(__name__)


class TallyEngine:
    """Ties the ledger, round tally computer and overall aggregator to one event.

    Lifecycle signals arrive from event management: a round is opened with
    its active contestants, judges submit, and the round is closed, which
    forces a recompute before the round counts as finished.
    """

    def __init__(self, event: Event, settings: TallySettings | None = None):
        self.event = event
        self.settings = settings or get_settings()
        self.graph = CriterionGraph(event.rounds, self.settings.weight_tolerance)
        self.ledger = ScoreLedger(event.judges)
        self.store = TallyStore()
        self.computer = RoundTallyComputer(self.graph, self.ledger, self.store, self.settings)
        self.aggregator = OverallAggregator(self.graph, self.store, self.settings)

    def get_round(self, round_id: str) -> Round:
        return self.graph.get_round(round_id)

    # --- Lifecycle ---

    def _check_contestants(self, round_id: str, contestants: list[str]) -> None:
        known = {c.id for c in self.event.contestants}
        unknown = [c for c in contestants if c not in known]
        if unknown:
            raise ConfigurationError(f"Unknown contestants for round {round_id!r}: {unknown}")

    def open_round(self, round_id: str, active_contestants: Iterable[str]) -> Round:
        """Start (or restart) scoring a round for the given contestants."""
        rnd = self.get_round(round_id)
        active = list(active_contestants)
        self._check_contestants(round_id, active)
        rnd.active_contestants = active
        self.ledger.set_status(rnd, RoundStatus.ONGOING)
        logger.info("Round %s opened with %d contestants", round_id, len(active))
        return rnd

    def set_active_contestants(self, round_id: str, active_contestants: Iterable[str]) -> None:
        """Change an open round's active set; removed contestants drop out on recompute."""
        rnd = self.get_round(round_id)
        active = list(active_contestants)
        self._check_contestants(round_id, active)
        rnd.active_contestants = active

    def close_round(self, round_id: str) -> list[Round]:
        """Finish a round with a mandatory recompute.

        The round stops accepting scores before the recompute starts, so the
        finished tally covers every accepted submission. Any later rounds that
        already derived from it are recomputed too, in order.

        Returns:
            The dependent rounds that were recomputed

        Raises:
            TallyError: If the round cannot be tallied yet (typically
                UnresolvedDependencyError); the round keeps its previous status
        """
        rnd = self.get_round(round_id)
        previous = rnd.status
        self.ledger.set_status(rnd, RoundStatus.FINISHED)
        try:
            self.computer.compute_round_tally(rnd)
        except TallyError:
            self.ledger.set_status(rnd, previous)
            raise
        logger.info("Round %s closed", round_id)
        return self.recompute_dependents(round_id)

    def reopen_round(self, round_id: str) -> list[Round]:
        """Reopen a finished round for corrections.

        Returns:
            The later rounds whose derived criteria read this round's total;
            they cannot be recomputed until the round is closed again
        """
        rnd = self.get_round(round_id)
        self.ledger.set_status(rnd, RoundStatus.ONGOING)
        dependents = self.graph.dependents_of(round_id)
        if dependents:
            logger.warning(
                "Round %s reopened; rounds %s derive from it and need a recompute",
                round_id, [r.id for r in dependents],
            )
        return dependents

    def recompute_dependents(self, round_id: str) -> list[Round]:
        recomputed = []
        for dependent in self.graph.dependents_of(round_id):
            if not self.store.has_round(dependent.id):
                continue
            try:
                self.computer.compute_round_tally(dependent)
            except UnresolvedDependencyError as e:
                logger.warning("Cascade stopped at round %s: %s", dependent.id, e)
                break
            recomputed.append(dependent)
        return recomputed

    # --- Submissions ---

    def submit(self, submission: Submission | Mapping[str, Any]) -> None:
        """Record one judge's values for one contestant (no recompute)."""
        if not isinstance(submission, Submission):
            submission = Submission.from_dict(submission)
        rnd = self.get_round(submission.round_id)
        self.ledger.submit(rnd, submission.judge_id, submission.contestant_id, submission.values)

    def submit_round(
        self, round_id: str, judge_id: str, batches: Mapping[str, Mapping[str, Any]]
    ) -> list[ComputedEntry] | None:
        """Record a judge's whole-round submission, then recompute the round.

        Returns:
            The new entries, or None if the recompute had to be deferred
            because a derived criterion's source round is not finished
        """
        rnd = self.get_round(round_id)
        self.ledger.submit_many(rnd, judge_id, batches)
        if self.ledger.all_judges_submitted(round_id):
            logger.info("All %d judges have submitted round %s", len(self.event.judges), round_id)
        try:
            return self.computer.compute_round_tally(rnd)
        except UnresolvedDependencyError as e:
            logger.warning("Recompute of round %s deferred: %s", round_id, e)
            return None

    # --- Results ---

    def recompute(self, round_id: str) -> list[ComputedEntry]:
        return self.computer.compute_round_tally(self.get_round(round_id))

    def is_current(self, round_id: str) -> bool:
        """False when submissions arrived after the round's last recompute."""
        generation = self.store.get_round(round_id)
        return generation is not None and generation.ledger_revision == self.ledger.revision(round_id)

    def is_fully_scored(self, round_id: str) -> bool:
        return self.ledger.is_fully_scored(self.get_round(round_id))

    def round_entries(self, round_id: str) -> list[ComputedEntry]:
        return self.store.entries(round_id)

    def overall(self, include_provisional: bool = False) -> list[OverallEntry]:
        return self.aggregator.compute_overall(self.event, include_provisional)

    def winners(self, count: int | None = None, include_provisional: bool = False) -> list[OverallEntry]:
        entries = self.overall(include_provisional)
        if count is None:
            count = self.settings.winners_count
        return winners(entries, count, self.event)

    def round_view(self, round_id: str) -> RoundView:
        return build_round_view(
            self.event, self.get_round(round_id), self.graph, self.ledger, self.store,
            self.settings,
        )
