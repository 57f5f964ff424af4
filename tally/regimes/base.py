"""Abstract base class for scoring regimes."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import ClassVar

from tally.models import Criterion


class ScoringRegime(ABC):
    """How judge-entered values become criterion scores.

    A regime is selected once per round and passed explicitly through every
    aggregation call. Regimes are registered via the @register_regime
    decorator in tally/regimes/__init__.py so event definitions can name them.
    """

    key: ClassVar[str]

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this regime."""
        pass

    @property
    def emits_breakdown(self) -> bool:
        """Whether per-criterion entries are produced alongside round totals."""
        return True

    @abstractmethod
    def criterion_score(self, values: Sequence[Decimal], criterion: Criterion) -> Decimal:
        """Aggregate the submitted values of one criterion for one contestant.

        Args:
            values: One value per judge who submitted this criterion
                (never empty)
            criterion: The non-derived criterion being scored

        Returns:
            The criterion's contribution to the round total (unrounded)
        """
        pass

    @abstractmethod
    def judge_contribution(
        self, values: Mapping[str, Decimal], criteria: Iterable[Criterion]
    ) -> Decimal:
        """One judge's own total for one contestant across scored criteria.

        Args:
            values: criterion_id -> value entered by the judge
            criteria: The round's non-derived criteria
        """
        pass

    def criteria_for(self, round_id: str) -> list[Criterion]:
        """Criteria this regime implies for a round, if it defines its own."""
        return []

    def to_dict(self) -> dict:
        return {"regime": self.key}


def mean(values: Sequence[Decimal]) -> Decimal:
    """Arithmetic mean over the values actually submitted."""
    return sum(values, Decimal(0)) / len(values)
