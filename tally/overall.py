"""Overall aggregation across an event's rounds, and winners extraction."""

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import TypeVar

from tally.config import TallySettings, get_settings
from tally.criteria import CriterionGraph
from tally.models import (
    AbsencePolicy, ComputedEntry, Event, OverallEntry, OverallMethod, Round,
)
from tally.ranking import rank_items
from tally.store import TallyStore

logger = logging.getLogger(__name__)

E = TypeVar("E", ComputedEntry, OverallEntry)


class OverallAggregator:
    """Combines round totals into one final score and rank per contestant.

    Only finished rounds count, unless provisional results are requested, in
    which case ongoing rounds with a computed tally count too and the entries
    are flagged provisional. Rounds are always taken in increasing order.
    """

    def __init__(
        self,
        graph: CriterionGraph,
        store: TallyStore,
        settings: TallySettings | None = None,
    ):
        self.graph = graph
        self.store = store
        self.settings = settings or get_settings()

    def counted_rounds(self, include_provisional: bool = False) -> list[Round]:
        rounds = []
        for rnd in self.graph.rounds_in_order():
            if rnd.is_finished or (include_provisional and rnd.is_open):
                if not self.store.has_round(rnd.id):
                    logger.warning("Round %s has no computed tally; not counted", rnd.id)
                    continue
                rounds.append(rnd)
        return rounds

    def compute_overall(
        self,
        event: Event,
        include_provisional: bool = False,
    ) -> list[OverallEntry]:
        """Regenerate the event's overall entries, ordered best first.

        The combination method and absence policy come from the event.
        """
        rounds = self.counted_rounds(include_provisional)
        provisional = any(not r.is_finished for r in rounds)
        round_totals = [self.store.round_totals(r.id) for r in rounds]

        combined: dict[str, tuple[Decimal, int]] = {}
        for contestant in event.contestants:
            contributions = []
            disqualified = False
            for totals in round_totals:
                if contestant.id in totals:
                    contributions.append(totals[contestant.id])
                elif event.absence_policy is AbsencePolicy.ZERO:
                    contributions.append(Decimal(0))
                elif event.absence_policy is AbsencePolicy.DISQUALIFY:
                    disqualified = True
                    break

            if disqualified:
                logger.warning(
                    "Contestant %s missed a counted round and is disqualified", contestant.id
                )
                continue
            combined[contestant.id] = (
                self.combine(contributions, event.overall_method),
                len(contributions),
            )

        ranked = rank_items(combined, key=lambda c: combined[c][0])
        entries = [
            OverallEntry(
                event_id=event.id,
                contestant_id=contestant_id,
                score=combined[contestant_id][0],
                rank=rank,
                rounds_counted=combined[contestant_id][1],
                provisional=provisional,
            )
            for contestant_id, rank in ranked
        ]
        self.store.replace_overall(entries)
        logger.info(
            "Computed overall for event %s over %d rounds (%d contestants)",
            event.id, len(rounds), len(entries),
        )
        return entries

    def combine(self, contributions: list[Decimal], method: OverallMethod) -> Decimal:
        if not contributions:
            return self.settings.quantize(Decimal(0))
        total = sum(contributions, Decimal(0))
        if method is OverallMethod.MEAN:
            total = total / len(contributions)
        return self.settings.quantize(total)


def winners(entries: Sequence[E], count: int, event: Event | None = None) -> list[E]:
    """Exactly `count` entries (or fewer if there are fewer), best rank first.

    Entries sharing a rank are ordered by the event's contestant listing, then
    by contestant id, so the cut is deterministic.
    """
    def position(entry: E) -> int:
        return event.contestant_position(entry.contestant_id) if event else 0

    ordered = sorted(entries, key=lambda e: (e.rank, position(e), e.contestant_id))
    return ordered[:count]


def winners_by_rank(entries: Sequence[E], max_rank: Decimal | int) -> list[E]:
    """Every entry ranked at or above `max_rank`; ties may exceed the count."""
    return sorted(
        (e for e in entries if e.rank <= max_rank),
        key=lambda e: (e.rank, e.contestant_id),
    )


def round_winners(entries: Sequence[E]) -> list[E]:
    """All entries sharing the best rank (e.g. two contestants at rank 1.5)."""
    if not entries:
        return []
    best = min(e.rank for e in entries)
    return [e for e in entries if e.rank == best]
