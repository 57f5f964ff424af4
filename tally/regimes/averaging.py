"""Averaging regime: judge averages weighted by percentage."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from tally.models import Criterion
from tally.regimes import register_regime
from tally.regimes.base import ScoringRegime, mean


@register_regime
@dataclass(frozen=True)
class AveragingRegime(ScoringRegime):
    """Weighted average scoring.

    For each criterion the submitted judge values are averaged (the divisor is
    the number of judges who actually submitted, not the roster size), then
    weighted:

        criterion score = average * weight_percent / 100

    With weights 40/35/25 and averages 80/90/70 the round total is
    32 + 31.5 + 17.5 = 81.
    """

    key = "averaging"

    @property
    def name(self) -> str:
        return "Averaging"

    def criterion_score(self, values: Sequence[Decimal], criterion: Criterion) -> Decimal:
        return self.weigh(mean(values), criterion)

    def judge_contribution(
        self, values: Mapping[str, Decimal], criteria: Iterable[Criterion]
    ) -> Decimal:
        return sum(
            (self.weigh(values[c.id], c) for c in criteria if c.id in values),
            Decimal(0),
        )

    @staticmethod
    def weigh(value: Decimal, criterion: Criterion) -> Decimal:
        return value * criterion.weight_percent / 100
