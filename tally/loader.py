"""Load event definitions (JSON, from a file or URL) and replay them."""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field, ValidationError, model_validator

# Import regimes to register them
from tally.regimes import averaging  # noqa: F401
from tally.regimes import objective  # noqa: F401
from tally.regimes import pointing  # noqa: F401

from tally.config import TallySettings, get_settings
from tally.engine import TallyEngine
from tally.errors import LoaderError, TallyError
from tally.ledger import Submission
from tally.models import (
    AbsencePolicy, Contestant, Criterion, Event, EventType, OverallMethod, Round,
    RoundStatus,
)
from tally.regimes import get_regime_class
from tally.regimes.base import ScoringRegime
from tally.regimes.objective import ObjectiveRegime, PointRule

logger = logging.getLogger(__name__)

# Bounds of -1/-1 mark a derived criterion in older event definitions
LEGACY_DERIVED_BOUND = Decimal(-1)


class CriterionModel(BaseModel):
    id: str
    name: str | None = None
    weight: Decimal = Decimal(0)
    min: Decimal | None = None
    max: Decimal | None = None
    derived: bool = False
    derived_from: str | None = None

    @property
    def is_derived(self) -> bool:
        return (
            self.derived
            or self.derived_from is not None
            or (self.min == LEGACY_DERIVED_BOUND and self.max == LEGACY_DERIVED_BOUND)
        )

    @model_validator(mode="after")
    def check_bounds(self):
        if not self.is_derived and self.min is not None and self.max is not None:
            if self.min > self.max:
                raise ValueError(f"Criterion {self.id!r}: min {self.min} exceeds max {self.max}")
        return self


class PointRuleModel(BaseModel):
    correct: Decimal = Decimal(1)
    wrong: Decimal = Decimal(0)
    bonus: Decimal = Decimal(0)
    skip_penalty: Decimal = Decimal(0)
    violation_penalty: Decimal = Decimal(0)


class RoundModel(BaseModel):
    id: str
    name: str | None = None
    order: int
    regime: str | None = None
    status: RoundStatus = RoundStatus.PENDING
    active: list[str] | None = None
    criteria: list[CriterionModel] = Field(default_factory=list)
    point_rule: PointRuleModel | None = None
    total_items: int | None = Field(default=None, ge=0)


class ContestantModel(BaseModel):
    id: str
    name: str | None = None
    organization: str = ""


class OverallModel(BaseModel):
    method: OverallMethod | None = None
    absence_policy: AbsencePolicy | None = None


class EventModel(BaseModel):
    id: str = "event"
    name: str
    type: EventType = EventType.CRITERIA
    judges: list[str]
    contestants: list[ContestantModel]
    rounds: list[RoundModel]
    overall: OverallModel = Field(default_factory=OverallModel)
    scores: list[dict[str, Any]] = Field(default_factory=list)


@dataclass
class EventDefinition:
    """A loaded event plus the recorded state needed to replay it.

    Attributes:
        event: The event, with every round still pending
        statuses: round_id -> recorded status
        active: round_id -> recorded active contestants
        submissions: Recorded submissions, in document order
    """
    event: Event
    statuses: dict[str, RoundStatus] = field(default_factory=dict)
    active: dict[str, list[str]] = field(default_factory=dict)
    submissions: list[Submission] = field(default_factory=list)


def build_regime(model: RoundModel, event_type: EventType) -> ScoringRegime:
    key = model.regime or ("objective" if event_type is EventType.ORW else "averaging")
    regime_class = get_regime_class(key)
    if regime_class is ObjectiveRegime:
        rule = model.point_rule or PointRuleModel()
        return ObjectiveRegime(rule=PointRule(**rule.model_dump()), total_items=model.total_items)
    return regime_class()


def build_criteria(model: RoundModel, previous_round: str | None) -> list[Criterion]:
    criteria = []
    for i, c in enumerate(model.criteria):
        if c.is_derived:
            source = c.derived_from or previous_round
            if source is None:
                raise LoaderError(
                    f"Derived criterion {c.id!r} in the first round has no source round"
                )
            criteria.append(Criterion(
                id=c.id,
                name=c.name or c.id,
                round_id=model.id,
                weight_percent=c.weight,
                derived_from=source,
                display_order=i,
            ))
        else:
            criteria.append(Criterion(
                id=c.id,
                name=c.name or c.id,
                round_id=model.id,
                weight_percent=c.weight,
                min_points=c.min if c.min is not None else Decimal(0),
                max_points=c.max if c.max is not None else Decimal(100),
                display_order=i,
            ))
    return criteria


def build_definition(data: dict[str, Any], settings: TallySettings | None = None) -> EventDefinition:
    """Validate a parsed event document and convert it to the engine's model."""
    settings = settings or get_settings()
    try:
        model = EventModel.model_validate(data)
    except ValidationError as e:
        raise LoaderError(f"Invalid event definition: {e}") from e

    contestants = [Contestant(id=c.id, name=c.name or c.id, organization=c.organization)
                   for c in model.contestants]
    definition = EventDefinition(event=Event(
        id=model.id,
        name=model.name,
        event_type=model.type,
        contestants=contestants,
        judges=list(model.judges),
        overall_method=model.overall.method or settings.overall_method,
        absence_policy=model.overall.absence_policy or settings.absence_policy,
    ))

    previous_round = None
    for round_model in sorted(model.rounds, key=lambda r: r.order):
        try:
            regime = build_regime(round_model, model.type)
        except KeyError as e:
            raise LoaderError(str(e)) from e
        criteria = build_criteria(round_model, previous_round) + regime.criteria_for(round_model.id)
        definition.event.rounds.append(Round(
            id=round_model.id,
            name=round_model.name or round_model.id,
            order=round_model.order,
            regime=regime,
            criteria=criteria,
        ))
        definition.statuses[round_model.id] = round_model.status
        definition.active[round_model.id] = (
            list(round_model.active) if round_model.active is not None
            else [c.id for c in contestants]
        )
        previous_round = round_model.id

    try:
        definition.submissions = [Submission.from_dict(s) for s in model.scores]
    except ValueError as e:
        raise LoaderError(str(e)) from e
    return definition


def fetch_source(url: str, timeout: float) -> bytes:
    """Fetch an event definition over HTTP(S)."""
    try:
        with httpx.Client(follow_redirects=True, timeout=timeout) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPStatusError as e:
        raise LoaderError(f"HTTP error fetching event definition: {e.response.status_code}")
    except httpx.RequestError as e:
        raise LoaderError(f"Error fetching event definition: {e}")


def read_source(source: str, settings: TallySettings) -> bytes:
    parsed = urlparse(source)
    if parsed.scheme in ("http", "https"):
        return fetch_source(source, settings.fetch_timeout)
    if parsed.scheme not in ("", "file"):
        raise LoaderError(f"Invalid URL scheme: {parsed.scheme}")
    path = Path(parsed.path if parsed.scheme == "file" else source)
    try:
        return path.read_bytes()
    except OSError as e:
        raise LoaderError(f"Could not read {path}: {e}") from e


def load_definition(source: str, settings: TallySettings | None = None) -> EventDefinition:
    """Load an event definition from a file path or http(s) URL.

    Raises:
        LoaderError: If the source cannot be read or is not a valid definition
    """
    settings = settings or get_settings()
    content = read_source(source, settings)
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise LoaderError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LoaderError("An event definition must be a JSON object")
    return build_definition(data, settings)


def replay(definition: EventDefinition, settings: TallySettings | None = None) -> TallyEngine:
    """Drive a new engine through the recorded lifecycle, round by round.

    Each non-pending round is opened with its recorded active set and fed its
    recorded submissions. Finished rounds are closed; ongoing rounds get a
    provisional recompute when their dependencies allow it.
    """
    try:
        engine = TallyEngine(definition.event, settings)
    except TallyError as e:
        raise LoaderError(f"Invalid event definition: {e}") from e

    by_round: dict[str, list[Submission]] = {}
    for submission in definition.submissions:
        by_round.setdefault(submission.round_id, []).append(submission)

    for rnd in engine.graph.rounds_in_order():
        status = definition.statuses.get(rnd.id, RoundStatus.PENDING)
        if status is RoundStatus.PENDING:
            continue
        try:
            engine.open_round(rnd.id, definition.active[rnd.id])
        except TallyError as e:
            raise LoaderError(f"Could not open round {rnd.id!r}: {e}") from e
        for submission in by_round.get(rnd.id, []):
            try:
                engine.submit(submission)
            except TallyError as e:
                raise LoaderError(
                    f"Recorded submission from judge {submission.judge_id!r} for "
                    f"{submission.contestant_id!r} in round {rnd.id!r} was rejected: {e}"
                ) from e
        if status is RoundStatus.FINISHED:
            try:
                engine.close_round(rnd.id)
            except TallyError as e:
                raise LoaderError(f"Could not close round {rnd.id!r}: {e}") from e
        else:
            try:
                engine.recompute(rnd.id)
            except TallyError as e:
                logger.warning("Round %s left without a tally: %s", rnd.id, e)

    unknown = set(by_round) - {r.id for r in definition.event.rounds}
    if unknown:
        logger.warning("Ignored submissions for unknown rounds: %s", sorted(unknown))
    return engine
