"""Shared test helpers and fixtures."""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from tally.config import TallySettings
from tally.engine import TallyEngine
from tally.models import Contestant, Criterion, Event, EventType, Round
from tally.regimes.averaging import AveragingRegime
from tally.regimes.base import ScoringRegime

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def D(value) -> Decimal:
    """Shorthand for building Decimals from literals in tests."""
    return Decimal(str(value))


def make_criterion(
    criterion_id: str,
    round_id: str,
    weight=0,
    min_points=0,
    max_points=100,
    derived_from: str | None = None,
    display_order: int = 0,
) -> Criterion:
    if derived_from is not None:
        return Criterion(
            id=criterion_id, name=criterion_id, round_id=round_id,
            weight_percent=D(weight), derived_from=derived_from,
            display_order=display_order,
        )
    return Criterion(
        id=criterion_id, name=criterion_id, round_id=round_id,
        weight_percent=D(weight), min_points=D(min_points), max_points=D(max_points),
        display_order=display_order,
    )


def make_round(
    round_id: str,
    order: int,
    weights: dict[str, int | float],
    regime: ScoringRegime | None = None,
    derived: dict[str, str] | None = None,
    max_points=100,
) -> Round:
    """Build a round from a compact {criterion_id: weight} table.

    Args:
        round_id: Round identifier
        order: Round order within the event
        weights: Scored criteria and their weights, in display order
        regime: Defaults to the averaging regime
        derived: Derived criteria as {criterion_id: source_round_id}
    """
    criteria = [
        make_criterion(cid, round_id, weight, max_points=max_points, display_order=i)
        for i, (cid, weight) in enumerate(weights.items())
    ]
    for i, (cid, source) in enumerate((derived or {}).items()):
        criteria.append(make_criterion(
            cid, round_id, derived_from=source, display_order=len(weights) + i,
        ))
    return Round(
        id=round_id, name=round_id.title(), order=order,
        regime=regime or AveragingRegime(), criteria=criteria,
    )


def make_event(
    rounds: list[Round],
    contestants=("A", "B", "C", "D"),
    judges=("J1", "J2", "J3"),
    **kwargs,
) -> Event:
    return Event(
        id="test-event",
        name="Test Event",
        event_type=kwargs.pop("event_type", EventType.CRITERIA),
        contestants=[Contestant(id=c, name=f"Contestant {c}") for c in contestants],
        judges=list(judges),
        rounds=rounds,
        **kwargs,
    )


def score(engine: TallyEngine, round_id: str, judge: str, contestant: str, *values) -> None:
    """Submit values for a round's scored criteria, in display order."""
    rnd = engine.get_round(round_id)
    criteria = sorted(rnd.scored_criteria, key=lambda c: c.display_order)
    engine.submit({
        "roundId": round_id,
        "judgeId": judge,
        "contestantId": contestant,
        "values": [
            {"criterionId": c.id, "value": v} for c, v in zip(criteria, values)
        ],
    })


def totals(entries) -> dict[str, tuple[Decimal, Decimal]]:
    """contestant_id -> (score, rank) for the round-total entries."""
    return {e.contestant_id: (e.score, e.rank) for e in entries if e.is_round_total}


def make_pageant(**event_kwargs) -> TallyEngine:
    """Two-round pageant with a final that carries the preliminary total.

    prelim: poise 40%, talent 35%, intelligence 25%
    final:  qa 100% plus "carry", derived from prelim
    """
    prelim = make_round("prelim", 1, {"poise": 40, "talent": 35, "intelligence": 25})
    final = make_round("final", 2, {"qa": 100}, derived={"carry": "prelim"})
    event = make_event(
        [prelim, final], contestants=("A", "B", "C", "D", "E"), **event_kwargs
    )
    return TallyEngine(event, TallySettings())


def score_prelim(engine: TallyEngine) -> None:
    """Preliminary scores.

                 J1            J2            J3         weighted total
        A   80  90  70    80  90  70    80  90  70        81
        B   90  80  80    80  80  80       --             82 (J3 absent)
        C   70  70  70    70  70  70    70  70  70        70
        D   80  80  84    80  80  84    80  80  84        81

    Totals rank B 1, A 2.5, D 2.5, C 4.
    """
    engine.open_round("prelim", ["A", "B", "C", "D"])
    for judge in ("J1", "J2", "J3"):
        score(engine, "prelim", judge, "A", 80, 90, 70)
        score(engine, "prelim", judge, "C", 70, 70, 70)
        score(engine, "prelim", judge, "D", 80, 80, 84)
    score(engine, "prelim", "J1", "B", 90, 80, 80)
    score(engine, "prelim", "J2", "B", 80, 80, 80)


def score_final(engine: TallyEngine) -> None:
    """Final Q&A: A 90, B 80, D 70 from every judge.

    With the carried preliminary totals: A 171, B 162, D 151.
    """
    engine.open_round("final", ["A", "B", "D"])
    for judge in ("J1", "J2", "J3"):
        score(engine, "final", judge, "A", 90)
        score(engine, "final", judge, "B", 80)
        score(engine, "final", judge, "D", 70)


@pytest.fixture
def settings():
    return TallySettings()


@pytest.fixture
def pageant():
    """Pageant engine with nothing opened yet."""
    return make_pageant()


@pytest.fixture
def scored_pageant():
    """Pageant with the preliminary round closed and the final closed."""
    engine = make_pageant()
    score_prelim(engine)
    engine.close_round("prelim")
    score_final(engine)
    engine.close_round("final")
    return engine


@pytest.fixture
def pageant_json():
    path = FIXTURES_DIR / "pageant.json"
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def pageant_path():
    return FIXTURES_DIR / "pageant.json"
