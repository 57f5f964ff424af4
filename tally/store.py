"""Generation-based store of computed entries.

Each recompute of a round produces a new generation of entries that replaces
the previous one in a single swap, so readers never observe a partial set and
stale rows cannot survive a recompute.
"""

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from tally.models import ComputedEntry, OverallEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundGeneration:
    """One complete, immutable set of computed entries for a round.

    Attributes:
        round_id: Round identifier
        generation: Increments on every swap for this round
        ledger_revision: Ledger revision of the round the entries were computed from
        entries: Every per-criterion and round-total entry
    """
    round_id: str
    generation: int
    ledger_revision: int
    entries: tuple[ComputedEntry, ...]

    @property
    def totals(self) -> list[ComputedEntry]:
        return [e for e in self.entries if e.is_round_total]

    def for_criterion(self, criterion_id: str) -> list[ComputedEntry]:
        return [e for e in self.entries if e.criterion_id == criterion_id]


class TallyStore:
    """In-memory owner of ComputedEntry and OverallEntry sets."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rounds: dict[str, RoundGeneration] = {}
        self._overall: tuple[OverallEntry, ...] = ()

    def replace_round(
        self, round_id: str, entries: Sequence[ComputedEntry], ledger_revision: int
    ) -> RoundGeneration:
        """Discard a round's previous entries and install a new generation."""
        with self._lock:
            previous = self._rounds.get(round_id)
            generation = RoundGeneration(
                round_id=round_id,
                generation=previous.generation + 1 if previous else 1,
                ledger_revision=ledger_revision,
                entries=tuple(entries),
            )
            self._rounds[round_id] = generation
        logger.debug(
            "Round %s: generation %d installed (%d entries, ledger revision %d)",
            round_id, generation.generation, len(generation.entries), ledger_revision,
        )
        return generation

    def has_round(self, round_id: str) -> bool:
        return round_id in self._rounds

    def get_round(self, round_id: str) -> RoundGeneration | None:
        return self._rounds.get(round_id)

    def entries(self, round_id: str) -> list[ComputedEntry]:
        generation = self._rounds.get(round_id)
        return list(generation.entries) if generation else []

    def round_totals(self, round_id: str) -> dict[str, Decimal]:
        """contestant_id -> round total score, for a computed round."""
        generation = self._rounds.get(round_id)
        if generation is None:
            return {}
        return {e.contestant_id: e.score for e in generation.totals}

    def get_entry(
        self, round_id: str, contestant_id: str, criterion_id: str | None = None
    ) -> ComputedEntry | None:
        generation = self._rounds.get(round_id)
        if generation is None:
            return None
        for entry in generation.entries:
            if entry.contestant_id == contestant_id and entry.criterion_id == criterion_id:
                return entry
        return None

    def replace_overall(self, entries: Sequence[OverallEntry]) -> None:
        with self._lock:
            self._overall = tuple(entries)

    def overall(self) -> list[OverallEntry]:
        return list(self._overall)
