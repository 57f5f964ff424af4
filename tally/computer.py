"""Round tally computation: criterion aggregates, round totals and ranks."""

import logging
import threading
from decimal import Decimal

from tally.config import TallySettings, get_settings
from tally.criteria import CriterionGraph
from tally.ledger import ScoreLedger
from tally.models import ComputedEntry, Criterion, Round
from tally.ranking import rank_mapping
from tally.regimes.base import ScoringRegime
from tally.store import TallyStore

logger = logging.getLogger(__name__)


def aggregate_criterion(
    regime: ScoringRegime,
    criterion: Criterion,
    values: list[Decimal],
    settings: TallySettings,
) -> Decimal | None:
    """Score one non-derived criterion for one contestant.

    Judges who did not submit contribute nothing: the regime only sees the
    submitted values. Returns None when nobody submitted.
    """
    if not values:
        return None
    return settings.quantize(regime.criterion_score(values, criterion))


def derived_score(
    criterion: Criterion,
    contestant_id: str,
    source_totals: dict[str, dict[str, Decimal]],
) -> Decimal:
    """A derived criterion's score: the source round's total for the contestant.

    Contestants missing from the source round contribute 0.
    """
    return source_totals[criterion.derived_from].get(contestant_id, Decimal(0))


def participants_for(rnd: Round, ledger: ScoreLedger) -> list[str]:
    """Active contestants with at least one raw score in the round.

    A round without scored criteria takes every active contestant.
    """
    if not rnd.scored_criteria:
        return list(rnd.active_contestants)
    scored = ledger.contestants_with_scores(rnd.id)
    return [c for c in rnd.active_contestants if c in scored]


def criterion_scores(
    rnd: Round,
    ledger: ScoreLedger,
    participants: list[str],
    source_totals: dict[str, dict[str, Decimal]],
    settings: TallySettings,
) -> dict[str, dict[str, Decimal]]:
    """criterion_id -> {contestant_id: score}, in evaluation order."""
    scores: dict[str, dict[str, Decimal]] = {}
    for criterion in CriterionGraph.evaluation_order(rnd):
        per_contestant: dict[str, Decimal] = {}
        for contestant_id in participants:
            if criterion.is_derived:
                per_contestant[contestant_id] = derived_score(
                    criterion, contestant_id, source_totals
                )
                continue
            values = ledger.values_for(rnd.id, contestant_id, criterion.id)
            score = aggregate_criterion(rnd.regime, criterion, values, settings)
            if score is not None:
                per_contestant[contestant_id] = score
        scores[criterion.id] = per_contestant
    return scores


def build_entries(
    rnd: Round,
    ledger: ScoreLedger,
    source_totals: dict[str, dict[str, Decimal]],
    settings: TallySettings,
) -> list[ComputedEntry]:
    """Per-criterion entries (if the regime emits them) and round totals, ranked.

    Reads the ledger and the given source totals only; nothing is stored.
    """
    participants = participants_for(rnd, ledger)
    scores = criterion_scores(rnd, ledger, participants, source_totals, settings)

    entries: list[ComputedEntry] = []
    if rnd.regime.emits_breakdown:
        for criterion_id, per_contestant in scores.items():
            ranks = rank_mapping(per_contestant)
            entries.extend(
                ComputedEntry(
                    round_id=rnd.id,
                    contestant_id=contestant_id,
                    criterion_id=criterion_id,
                    score=score,
                    rank=ranks[contestant_id],
                )
                for contestant_id, score in per_contestant.items()
            )

    totals = {
        contestant_id: settings.quantize(sum(
            (per_contestant.get(contestant_id, Decimal(0))
             for per_contestant in scores.values()),
            Decimal(0),
        ))
        for contestant_id in participants
    }
    ranks = rank_mapping(totals)
    entries.extend(
        ComputedEntry(
            round_id=rnd.id,
            contestant_id=contestant_id,
            criterion_id=None,
            score=total,
            rank=ranks[contestant_id],
        )
        for contestant_id, total in totals.items()
    )
    return entries


class RoundTallyComputer:
    """Computes and persists the tally of one round at a time.

    Recomputes of the same round are serialized; a caller that loses the race
    waits and then produces the same result from the same ledger state.
    Different rounds may be computed in parallel.
    """

    def __init__(
        self,
        graph: CriterionGraph,
        ledger: ScoreLedger,
        store: TallyStore,
        settings: TallySettings | None = None,
    ):
        self.graph = graph
        self.ledger = ledger
        self.store = store
        self.settings = settings or get_settings()
        self._locks_guard = threading.Lock()
        self._round_locks: dict[str, threading.Lock] = {}

    def _round_lock(self, round_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._round_locks.setdefault(round_id, threading.Lock())

    def compute_round_tally(self, rnd: Round) -> list[ComputedEntry]:
        """Regenerate every computed entry for a round.

        Any previous entries for the round are discarded in the same step the
        new ones are installed. If computation fails, the previous entries
        stay in place.

        Raises:
            UnresolvedDependencyError: If a derived criterion's source round
                has not finished; nothing is written
        """
        with self._round_lock(rnd.id):
            revision = self.ledger.revision(rnd.id)
            source_totals = self.graph.resolve_sources(rnd, self.store)
            entries = build_entries(rnd, self.ledger, source_totals, self.settings)
            generation = self.store.replace_round(rnd.id, entries, revision)
        logger.info(
            "Computed round %s: %d contestants, generation %d",
            rnd.id, len(generation.totals), generation.generation,
        )
        return entries
