"""Objective right/wrong (ORW) regime."""

from dataclasses import dataclass, field
from decimal import Decimal

from tally.models import Criterion
from tally.regimes import register_regime
from tally.regimes.pointing import PointingRegime

CATEGORIES = ("correct", "wrong", "bonus", "skip", "violation")


@dataclass(frozen=True)
class PointRule:
    """Points awarded per counted item.

    Penalties are positive magnitudes and are subtracted.
    """
    correct: Decimal = Decimal(1)
    wrong: Decimal = Decimal(0)
    bonus: Decimal = Decimal(0)
    skip_penalty: Decimal = Decimal(0)
    violation_penalty: Decimal = Decimal(0)

    def points_for(self, category: str) -> Decimal:
        return {
            "correct": self.correct,
            "wrong": self.wrong,
            "bonus": self.bonus,
            "skip": -self.skip_penalty,
            "violation": -self.violation_penalty,
        }[category]


@register_regime
@dataclass(frozen=True)
class ObjectiveRegime(PointingRegime):
    """Points-only accumulation for right/wrong events.

    Scorers enter counts per category (correct, wrong, bonus, skip, violation).
    A round total is

        correct*pts_correct + wrong*pts_wrong + bonus*pts_bonus
            - skip*pen_skip - violation*pen_violation

    This is a degenerate pointing regime: the categories act as the round's
    criteria, but no per-criterion breakdown is produced.
    """

    key = "objective"

    rule: PointRule = field(default_factory=PointRule)
    total_items: int | None = None

    @property
    def name(self) -> str:
        return "Objective Right/Wrong"

    @property
    def emits_breakdown(self) -> bool:
        return False

    def points(self, criterion: Criterion) -> Decimal:
        return self.rule.points_for(criterion.category)

    def criteria_for(self, round_id: str) -> list[Criterion]:
        max_points = Decimal(self.total_items) if self.total_items is not None else None
        return [
            Criterion(
                id=f"{round_id}.{category}",
                name=category,
                round_id=round_id,
                min_points=Decimal(0),
                max_points=max_points,
                display_order=i,
                category=category,
            )
            for i, category in enumerate(CATEGORIES)
        ]

    def to_dict(self) -> dict:
        return {
            "regime": self.key,
            "total_items": self.total_items,
            "rule": {
                "correct": self.rule.correct,
                "wrong": self.rule.wrong,
                "bonus": self.rule.bonus,
                "skip_penalty": self.rule.skip_penalty,
                "violation_penalty": self.rule.violation_penalty,
            },
        }
