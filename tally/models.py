"""Core data models for events, rounds and computed tallies."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tally.regimes.base import ScoringRegime


class RoundStatus(str, Enum):
    PENDING = "pending"
    ONGOING = "ongoing"
    FINISHED = "finished"


class EventType(str, Enum):
    CRITERIA = "criteria"
    ORW = "orw"  # objective right/wrong


class OverallMethod(str, Enum):
    SUM = "sum"
    MEAN = "mean"


class AbsencePolicy(str, Enum):
    """How a contestant missing from a finished round is treated overall."""
    EXCLUDE = "exclude"  # no contribution for that round
    ZERO = "zero"  # counted as a round with total 0
    DISQUALIFY = "disqualify"  # no overall entry at all


@dataclass(frozen=True)
class Criterion:
    """A scorable dimension within a round.

    Attributes:
        id: Criterion identifier, unique within its event
        name: Display name (e.g. "Beauty & Poise")
        round_id: The round this criterion belongs to
        weight_percent: Weight (0-100), only meaningful in the averaging regime
        min_points: Lowest value a judge may enter (None when derived)
        max_points: Highest value a judge may enter (None when derived)
        derived_from: Source round id for a derived criterion, else None
        display_order: Position within the round's criterion list
        category: Counted item category (e.g. "correct") for objective rounds
    """
    id: str
    name: str
    round_id: str
    weight_percent: Decimal = Decimal(0)
    min_points: Decimal | None = None
    max_points: Decimal | None = None
    derived_from: str | None = None
    display_order: int = 0
    category: str | None = None

    @property
    def is_derived(self) -> bool:
        return self.derived_from is not None

    def accepts(self, value: Decimal) -> bool:
        """Check a judge-entered value against this criterion's bounds."""
        if self.is_derived:
            return False
        if self.min_points is not None and value < self.min_points:
            return False
        if self.max_points is not None and value > self.max_points:
            return False
        return True


@dataclass(frozen=True)
class Contestant:
    id: str
    name: str
    organization: str = ""


@dataclass
class Round:
    """One round of an event.

    The regime is chosen once, when the round is created, and carried through
    every aggregation call for the round.
    """
    id: str
    name: str
    order: int
    regime: ScoringRegime
    criteria: list[Criterion] = field(default_factory=list)
    status: RoundStatus = RoundStatus.PENDING
    active_contestants: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status is RoundStatus.ONGOING

    @property
    def is_finished(self) -> bool:
        return self.status is RoundStatus.FINISHED

    @property
    def scored_criteria(self) -> list[Criterion]:
        """Criteria that take judge-entered values."""
        return [c for c in self.criteria if not c.is_derived]

    @property
    def derived_criteria(self) -> list[Criterion]:
        return [c for c in self.criteria if c.is_derived]

    def get_criterion(self, criterion_id: str) -> Criterion | None:
        for criterion in self.criteria:
            if criterion.id == criterion_id:
                return criterion
        return None


@dataclass
class Event:
    """A competition: contestants, a judge roster and ordered rounds."""
    id: str
    name: str
    event_type: EventType = EventType.CRITERIA
    contestants: list[Contestant] = field(default_factory=list)
    judges: list[str] = field(default_factory=list)
    rounds: list[Round] = field(default_factory=list)
    overall_method: OverallMethod = OverallMethod.SUM
    absence_policy: AbsencePolicy = AbsencePolicy.EXCLUDE

    def get_round(self, round_id: str) -> Round:
        for rnd in self.rounds:
            if rnd.id == round_id:
                return rnd
        raise KeyError(f"Unknown round: {round_id}")

    def contestant_position(self, contestant_id: str) -> int:
        """Position of a contestant in the event's listing (unknown ids last)."""
        for i, contestant in enumerate(self.contestants):
            if contestant.id == contestant_id:
                return i
        return len(self.contestants)

    def get_contestant(self, contestant_id: str) -> Contestant | None:
        for contestant in self.contestants:
            if contestant.id == contestant_id:
                return contestant
        return None


@dataclass(frozen=True)
class RawScore:
    """One value entered by one judge for one (round, contestant, criterion)."""
    round_id: str
    judge_id: str
    contestant_id: str
    criterion_id: str
    value: Decimal


@dataclass(frozen=True)
class ComputedEntry:
    """Engine output for one (round, contestant).

    A per-criterion aggregate when criterion_id is set, the round total when
    criterion_id is None.
    """
    round_id: str
    contestant_id: str
    criterion_id: str | None
    score: Decimal
    rank: Decimal

    @property
    def is_round_total(self) -> bool:
        return self.criterion_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_id": self.round_id,
            "contestant_id": self.contestant_id,
            "criterion_id": self.criterion_id,
            "score": self.score,
            "rank": self.rank,
        }


@dataclass(frozen=True)
class OverallEntry:
    """Final aggregate for one contestant across an event's rounds.

    Attributes:
        event_id: Event identifier
        contestant_id: Contestant identifier
        score: Combined score across counted rounds
        rank: Fractional rank (ties share the mean of their positions)
        rounds_counted: Number of rounds that contributed to the score
        provisional: True when an unfinished round contributed
    """
    event_id: str
    contestant_id: str
    score: Decimal
    rank: Decimal
    rounds_counted: int
    provisional: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "contestant_id": self.contestant_id,
            "score": self.score,
            "rank": self.rank,
            "rounds_counted": self.rounds_counted,
            "provisional": self.provisional,
        }
