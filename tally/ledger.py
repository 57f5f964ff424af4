"""Score ledger: validated, replace-not-append store of raw judge values."""

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Self

from tally.errors import RejectReason, ValidationError
from tally.models import RawScore, Round, RoundStatus

logger = logging.getLogger(__name__)

# (round_id, judge_id, contestant_id)
SheetKey = tuple[str, str, str]


@dataclass
class Submission:
    """One judge's values for one contestant in one round.

    Mirrors the external submission contract:
        {"roundId": ..., "judgeId": ..., "contestantId": ...,
         "values": [{"criterionId": ..., "value": ...}, ...]}
    """
    round_id: str
    judge_id: str
    contestant_id: str
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        try:
            values = {}
            for item in data.get("values", []):
                criterion_id = str(item["criterionId"])
                if criterion_id in values:
                    raise ValueError(f"Duplicate value for criterion {criterion_id!r}")
                values[criterion_id] = item["value"]
            return cls(
                round_id=str(data["roundId"]),
                judge_id=str(data["judgeId"]),
                contestant_id=str(data["contestantId"]),
                values=values,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed submission: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "roundId": self.round_id,
            "judgeId": self.judge_id,
            "contestantId": self.contestant_id,
            "values": [
                {"criterionId": criterion_id, "value": value}
                for criterion_id, value in self.values.items()
            ],
        }


def to_decimal(value: Any) -> Decimal | None:
    """Convert a submitted value to Decimal, or None if it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    return result if result.is_finite() else None


class ScoreLedger:
    """Raw values per (round, judge, contestant), replaced wholesale on resubmission.

    Writes for one judge in one round are serialized; writes from different
    judges proceed independently. Submitting never recomputes anything, it
    only bumps the round's revision so callers can tell a recompute is due.
    """

    def __init__(self, judges: Iterable[str] | None = None):
        self.judges = list(judges) if judges is not None else None
        self._sheets: dict[SheetKey, dict[str, Decimal]] = {}
        self._revisions: dict[str, int] = defaultdict(int)
        self._index_lock = threading.Lock()
        self._judge_locks: dict[tuple[str, str], threading.Lock] = {}

    def _judge_lock(self, round_id: str, judge_id: str) -> threading.Lock:
        with self._index_lock:
            return self._judge_locks.setdefault((round_id, judge_id), threading.Lock())

    # --- Round gate ---

    def set_status(self, rnd: Round, status: RoundStatus) -> None:
        """Change a round's status so that no write can straddle the change.

        A write either lands before the change (and is seen by any recompute
        that follows) or is checked against the new status and rejected.
        """
        with self._index_lock:
            rnd.status = status

    @staticmethod
    def _check_open(rnd: Round) -> None:
        if not rnd.is_open:
            raise ValidationError(
                RejectReason.ROUND_NOT_OPEN,
                f"Round {rnd.id!r} is {rnd.status.value}, not open for scoring",
            )

    # --- Validation ---

    def validate(
        self, rnd: Round, judge_id: str, contestant_id: str, values: Mapping[str, Any]
    ) -> dict[str, Decimal]:
        """Validate one sheet of values and return them as Decimals.

        Raises:
            ValidationError: On the first problem found; nothing is applied
        """
        self._check_open(rnd)
        if self.judges is not None and judge_id not in self.judges:
            raise ValidationError(
                RejectReason.UNKNOWN_JUDGE,
                f"Judge {judge_id!r} is not on this event's roster",
            )
        if contestant_id not in rnd.active_contestants:
            raise ValidationError(
                RejectReason.INACTIVE_CONTESTANT,
                f"Contestant {contestant_id!r} is not active in round {rnd.id!r}",
                contestant_id=contestant_id,
            )

        cleaned: dict[str, Decimal] = {}
        for criterion_id, raw in values.items():
            criterion = rnd.get_criterion(criterion_id)
            if criterion is None:
                raise ValidationError(
                    RejectReason.UNKNOWN_CRITERION,
                    f"Criterion {criterion_id!r} is not part of round {rnd.id!r}",
                    criterion_id=criterion_id, contestant_id=contestant_id,
                )
            if criterion.is_derived:
                raise ValidationError(
                    RejectReason.DERIVED_CRITERION,
                    f"Criterion {criterion.name!r} is derived from another round "
                    f"and does not accept direct input",
                    criterion_id=criterion_id, contestant_id=contestant_id,
                )
            value = to_decimal(raw)
            if value is None:
                raise ValidationError(
                    RejectReason.NOT_NUMERIC,
                    f"Value {raw!r} for criterion {criterion.name!r} is not a number",
                    criterion_id=criterion_id, contestant_id=contestant_id,
                )
            if not criterion.accepts(value):
                raise ValidationError(
                    RejectReason.OUT_OF_RANGE,
                    f"Value {value} for criterion {criterion.name!r} is outside "
                    f"[{criterion.min_points}, {criterion.max_points}]",
                    criterion_id=criterion_id, contestant_id=contestant_id,
                )
            cleaned[criterion_id] = value

        for criterion in rnd.scored_criteria:
            if criterion.id not in cleaned:
                raise ValidationError(
                    RejectReason.MISSING_VALUE,
                    f"Missing value for criterion {criterion.name!r}",
                    criterion_id=criterion.id, contestant_id=contestant_id,
                )

        return cleaned

    # --- Writes ---

    def submit(
        self, rnd: Round, judge_id: str, contestant_id: str, values: Mapping[str, Any]
    ) -> None:
        """Replace every value a judge holds for a contestant in a round."""
        with self._judge_lock(rnd.id, judge_id):
            cleaned = self.validate(rnd, judge_id, contestant_id, values)
            with self._index_lock:
                self._check_open(rnd)
                self._sheets[(rnd.id, judge_id, contestant_id)] = cleaned
                self._revisions[rnd.id] += 1
        logger.debug(
            "Judge %s submitted %d values for %s in round %s",
            judge_id, len(cleaned), contestant_id, rnd.id,
        )

    def submit_many(
        self, rnd: Round, judge_id: str, batches: Mapping[str, Mapping[str, Any]]
    ) -> None:
        """Replace a judge's sheets for several contestants at once.

        Every sheet is validated before any is written, so a single bad value
        rejects the whole batch.

        Args:
            rnd: The round being scored
            judge_id: The submitting judge
            batches: contestant_id -> {criterion_id: value}
        """
        with self._judge_lock(rnd.id, judge_id):
            cleaned = {
                contestant_id: self.validate(rnd, judge_id, contestant_id, values)
                for contestant_id, values in batches.items()
            }
            with self._index_lock:
                self._check_open(rnd)
                for contestant_id, sheet in cleaned.items():
                    self._sheets[(rnd.id, judge_id, contestant_id)] = sheet
                self._revisions[rnd.id] += 1
        logger.debug(
            "Judge %s submitted %d sheets in round %s", judge_id, len(cleaned), rnd.id
        )

    # --- Queries ---

    def _round_sheets(self, round_id: str) -> list[tuple[SheetKey, dict[str, Decimal]]]:
        with self._index_lock:
            return [(k, v) for k, v in self._sheets.items() if k[0] == round_id]

    def _judge_position(self, judge_id: str) -> tuple[int, str]:
        if self.judges is not None and judge_id in self.judges:
            return (self.judges.index(judge_id), judge_id)
        return (len(self.judges or ()), judge_id)

    def revision(self, round_id: str) -> int:
        """Counter bumped on every accepted write to the round."""
        with self._index_lock:
            return self._revisions[round_id]

    def submitted_judges(self, round_id: str) -> list[str]:
        judges = {key[1] for key, _ in self._round_sheets(round_id)}
        return sorted(judges, key=self._judge_position)

    def submitted_judge_count(self, round_id: str) -> int:
        return len(self.submitted_judges(round_id))

    def has_submitted(self, round_id: str, judge_id: str) -> bool:
        return any(key[1] == judge_id for key, _ in self._round_sheets(round_id))

    def all_judges_submitted(self, round_id: str) -> bool:
        """True once every rostered judge has submitted something for the round."""
        if not self.judges:
            return False
        return self.submitted_judge_count(round_id) >= len(self.judges)

    def contestants_with_scores(self, round_id: str) -> set[str]:
        return {key[2] for key, sheet in self._round_sheets(round_id) if sheet}

    def values_for(self, round_id: str, contestant_id: str, criterion_id: str) -> list[Decimal]:
        """Every judge's value for one (criterion, contestant), in roster order."""
        return [
            value for _, value in self.judge_values_for(round_id, contestant_id, criterion_id)
        ]

    def judge_values_for(
        self, round_id: str, contestant_id: str, criterion_id: str
    ) -> list[tuple[str, Decimal]]:
        """(judge_id, value) pairs for one (criterion, contestant), in roster order."""
        pairs = [
            (key[1], sheet[criterion_id])
            for key, sheet in self._round_sheets(round_id)
            if key[2] == contestant_id and criterion_id in sheet
        ]
        return sorted(pairs, key=lambda pair: self._judge_position(pair[0]))

    def judge_values(self, round_id: str, judge_id: str, contestant_id: str) -> dict[str, Decimal]:
        """The sheet one judge submitted for one contestant (empty if none)."""
        with self._index_lock:
            return dict(self._sheets.get((round_id, judge_id, contestant_id), {}))

    def raw_scores(self, round_id: str) -> list[RawScore]:
        return [
            RawScore(
                round_id=key[0],
                judge_id=key[1],
                contestant_id=key[2],
                criterion_id=criterion_id,
                value=value,
            )
            for key, sheet in self._round_sheets(round_id)
            for criterion_id, value in sheet.items()
        ]

    def is_fully_scored(self, rnd: Round) -> bool:
        """Every active contestant has a value from every rostered judge for
        every non-derived criterion."""
        judges = self.judges if self.judges is not None else self.submitted_judges(rnd.id)
        if not judges or not rnd.active_contestants:
            return False
        scored_ids = [c.id for c in rnd.scored_criteria]
        for contestant_id in rnd.active_contestants:
            for judge_id in judges:
                sheet = self.judge_values(rnd.id, judge_id, contestant_id)
                if any(criterion_id not in sheet for criterion_id in scored_ids):
                    return False
        return True
