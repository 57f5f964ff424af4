"""Pointing regime: accumulated points, weights ignored."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from tally.models import Criterion
from tally.regimes import register_regime
from tally.regimes.base import ScoringRegime


@register_regime
@dataclass(frozen=True)
class PointingRegime(ScoringRegime):
    """Cumulative points scoring.

    Every submitted value is added as-is. Criterion weights are ignored even
    when present; min/max bounds still apply at submission.
    """

    key = "pointing"

    @property
    def name(self) -> str:
        return "Pointing"

    def points(self, criterion: Criterion) -> Decimal:
        """Points per unit entered for a criterion."""
        return Decimal(1)

    def criterion_score(self, values: Sequence[Decimal], criterion: Criterion) -> Decimal:
        return sum(values, Decimal(0)) * self.points(criterion)

    def judge_contribution(
        self, values: Mapping[str, Decimal], criteria: Iterable[Criterion]
    ) -> Decimal:
        return sum(
            (values[c.id] * self.points(c) for c in criteria if c.id in values),
            Decimal(0),
        )
