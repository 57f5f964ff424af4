"""Read-only round views: judge matrix, summary and per-criterion tables.

The summary and detail tables are built from the same entries a recompute
would install right now (tally.computer.build_entries), never from whatever
generation the store last saved, so a view can't disagree with the round's
tally even while submissions are still arriving.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from tally.computer import build_entries, derived_score, participants_for
from tally.config import TallySettings, get_settings
from tally.criteria import CriterionGraph
from tally.errors import UnresolvedDependencyError
from tally.ledger import ScoreLedger
from tally.models import ComputedEntry, Criterion, Event, Round
from tally.ranking import rank_mapping
from tally.regimes.base import mean
from tally.store import TallyStore

# (criterion_id or None for the round total, contestant_id)
EntryKey = tuple[str | None, str]


@dataclass
class MatrixRow:
    """One contestant's row of the judge x contestant matrix.

    Attributes:
        contestant_id: Contestant identifier
        name: Contestant display name
        cells: judge_id -> the judge's individual contribution, or None if the
            judge has not scored this contestant
    """
    contestant_id: str
    name: str
    cells: dict[str, Decimal | None] = field(default_factory=dict)


@dataclass
class SummaryRow:
    contestant_id: str
    name: str
    total: Decimal
    rank: Decimal
    judge_average: Decimal
    criterion_scores: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class DetailRow:
    contestant_id: str
    name: str
    judge_values: dict[str, Decimal]
    average: Decimal
    weighted: Decimal
    rank: Decimal = Decimal(0)


@dataclass
class CriterionTable:
    criterion_id: str
    name: str
    weight_percent: Decimal
    is_derived: bool
    rows: list[DetailRow] = field(default_factory=list)


@dataclass
class RankSumRow:
    """Consensus ranking row: the sum of a contestant's per-criterion ranks.

    A lower rank sum is better.
    """
    contestant_id: str
    name: str
    criterion_ranks: dict[str, Decimal]
    rank_sum: Decimal
    rank: Decimal


@dataclass
class RoundView:
    round_id: str
    round_name: str
    regime: str
    judges: list[str]
    criteria: list[Criterion]
    matrix: list[MatrixRow]
    filled_cells: int
    total_cells: int
    summary_rows: list[SummaryRow] = field(default_factory=list)
    detail_tables: list[CriterionTable] = field(default_factory=list)
    rank_sum: list[RankSumRow] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.total_cells > 0 and self.filled_cells == self.total_cells

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_id": self.round_id,
            "round_name": self.round_name,
            "regime": self.regime,
            "judges": self.judges,
            "is_complete": self.is_complete,
            "filled_cells": self.filled_cells,
            "total_cells": self.total_cells,
            "matrix": [
                {"contestant_id": r.contestant_id, "name": r.name, "cells": r.cells}
                for r in self.matrix
            ],
            "summary": [
                {
                    "contestant_id": r.contestant_id,
                    "name": r.name,
                    "total": r.total,
                    "rank": r.rank,
                    "judge_average": r.judge_average,
                    "criterion_scores": r.criterion_scores,
                }
                for r in self.summary_rows
            ],
            "criteria": [
                {
                    "criterion_id": t.criterion_id,
                    "name": t.name,
                    "weight_percent": t.weight_percent,
                    "is_derived": t.is_derived,
                    "rows": [
                        {
                            "contestant_id": r.contestant_id,
                            "name": r.name,
                            "judge_values": r.judge_values,
                            "average": r.average,
                            "weighted": r.weighted,
                            "rank": r.rank,
                        }
                        for r in t.rows
                    ],
                }
                for t in self.detail_tables
            ],
            "rank_sum": [
                {
                    "contestant_id": r.contestant_id,
                    "name": r.name,
                    "criterion_ranks": r.criterion_ranks,
                    "rank_sum": r.rank_sum,
                    "rank": r.rank,
                }
                for r in self.rank_sum
            ],
        }


def view_participants(rnd: Round, ledger: ScoreLedger) -> list[str]:
    """Ongoing rounds show the whole active set; otherwise whoever takes part."""
    if rnd.is_open:
        return list(rnd.active_contestants)
    return participants_for(rnd, ledger)


def build_round_view(
    event: Event,
    rnd: Round,
    graph: CriterionGraph,
    ledger: ScoreLedger,
    store: TallyStore,
    settings: TallySettings | None = None,
) -> RoundView:
    """Assemble the read-side view of one round.

    Summary rows, detail tables and the rank-sum table are only filled in once
    every matrix cell is filled, and only while the round's derived criteria
    can be resolved.
    """
    settings = settings or get_settings()
    participants = view_participants(rnd, ledger)
    judges = list(event.judges)
    names = {c.id: c.name for c in event.contestants}

    try:
        source_totals = graph.resolve_sources(rnd, store)
        entries = build_entries(rnd, ledger, source_totals, settings)
    except UnresolvedDependencyError:
        # Matrix only: show whatever the source round has computed so far
        source_totals = {
            c.derived_from: store.round_totals(c.derived_from) for c in rnd.derived_criteria
        }
        entries = None

    matrix = []
    for contestant_id in participants:
        row = MatrixRow(contestant_id=contestant_id, name=names.get(contestant_id, contestant_id))
        for judge_id in judges:
            row.cells[judge_id] = judge_cell(
                rnd, ledger, judge_id, contestant_id, source_totals, settings
            )
        matrix.append(row)

    view = RoundView(
        round_id=rnd.id,
        round_name=rnd.name,
        regime=rnd.regime.name,
        judges=judges,
        criteria=CriterionGraph.evaluation_order(rnd),
        matrix=matrix,
        filled_cells=sum(1 for row in matrix for v in row.cells.values() if v is not None),
        total_cells=len(participants) * len(judges),
    )

    if view.is_complete and entries is not None:
        by_key: dict[EntryKey, ComputedEntry] = {
            (e.criterion_id, e.contestant_id): e for e in entries
        }
        view.summary_rows = summary_rows(entries, matrix, settings)
        if rnd.regime.emits_breakdown:
            view.detail_tables = [
                criterion_table(rnd, criterion, ledger, participants, names, by_key, settings)
                for criterion in view.criteria
            ]
            view.rank_sum = rank_sum_rows(view.detail_tables, participants, names)

    return view


def judge_cell(
    rnd: Round,
    ledger: ScoreLedger,
    judge_id: str,
    contestant_id: str,
    source_totals: dict[str, dict[str, Decimal]],
    settings: TallySettings,
) -> Decimal | None:
    """A judge's own contribution for a contestant, or None if not yet scored."""
    sheet = ledger.judge_values(rnd.id, judge_id, contestant_id)
    if not sheet and rnd.scored_criteria:
        return None
    total = rnd.regime.judge_contribution(sheet, rnd.scored_criteria)
    for criterion in rnd.derived_criteria:
        total += derived_score(criterion, contestant_id, source_totals)
    return settings.quantize(total)


def summary_rows(
    entries: list[ComputedEntry], matrix: list[MatrixRow], settings: TallySettings
) -> list[SummaryRow]:
    totals = {e.contestant_id: e for e in entries if e.is_round_total}
    breakdown: dict[str, dict[str, Decimal]] = {}
    for entry in entries:
        if not entry.is_round_total:
            breakdown.setdefault(entry.contestant_id, {})[entry.criterion_id] = entry.score

    rows = []
    for matrix_row in matrix:
        total = totals.get(matrix_row.contestant_id)
        if total is None:
            continue
        cells = [v for v in matrix_row.cells.values() if v is not None]
        rows.append(SummaryRow(
            contestant_id=matrix_row.contestant_id,
            name=matrix_row.name,
            total=total.score,
            rank=total.rank,
            judge_average=settings.quantize(mean(cells)) if cells else Decimal(0),
            criterion_scores=breakdown.get(matrix_row.contestant_id, {}),
        ))
    return sorted(rows, key=lambda r: r.rank)


def criterion_table(
    rnd: Round,
    criterion: Criterion,
    ledger: ScoreLedger,
    participants: list[str],
    names: dict[str, str],
    entries: dict[EntryKey, ComputedEntry],
    settings: TallySettings,
) -> CriterionTable:
    """One criterion's detail table; weighted scores and ranks are the entries'."""
    table = CriterionTable(
        criterion_id=criterion.id,
        name=criterion.name,
        weight_percent=criterion.weight_percent,
        is_derived=criterion.is_derived,
    )
    for contestant_id in participants:
        entry = entries.get((criterion.id, contestant_id))
        if entry is None:
            continue
        if criterion.is_derived:
            judge_values = {}
            average = entry.score
        else:
            pairs = ledger.judge_values_for(rnd.id, contestant_id, criterion.id)
            judge_values = dict(pairs)
            average = settings.quantize(mean([value for _, value in pairs]))
        table.rows.append(DetailRow(
            contestant_id=contestant_id,
            name=names.get(contestant_id, contestant_id),
            judge_values=judge_values,
            average=average,
            weighted=entry.score,
            rank=entry.rank,
        ))
    table.rows.sort(key=lambda r: r.rank)
    return table


def rank_sum_rows(
    tables: list[CriterionTable], participants: list[str], names: dict[str, str]
) -> list[RankSumRow]:
    """Consensus table: per-criterion ranks summed, lowest sum ranked first."""
    criterion_ranks: dict[str, dict[str, Decimal]] = {c: {} for c in participants}
    for table in tables:
        for row in table.rows:
            criterion_ranks[row.contestant_id][table.criterion_id] = row.rank

    sums = {c: sum(criterion_ranks[c].values(), Decimal(0)) for c in participants}
    # Ranking is on descending score, so negate: the lowest sum ranks first
    ranks = rank_mapping({c: -s for c, s in sums.items()})
    rows = [
        RankSumRow(
            contestant_id=c,
            name=names.get(c, c),
            criterion_ranks=criterion_ranks[c],
            rank_sum=sums[c],
            rank=ranks[c],
        )
        for c in participants
    ]
    return sorted(rows, key=lambda r: r.rank)
