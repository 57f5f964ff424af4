"""Criterion graph: round ordering and derivation resolution.

Derived criteria only ever point backward, to a round with a smaller order.
Rounds are therefore evaluated in increasing order, and within a round the
derived criteria are resolved last, from the source round's persisted total.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

from tally.errors import ConfigurationError, UnresolvedDependencyError
from tally.models import Criterion, Round
from tally.regimes.averaging import AveragingRegime
from tally.regimes.objective import CATEGORIES, ObjectiveRegime

if TYPE_CHECKING:
    from tally.store import TallyStore

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT_TOLERANCE = Decimal("0.1")


class CriterionGraph:
    """Validated view over an event's rounds and their derivation links."""

    def __init__(
        self,
        rounds: Iterable[Round],
        weight_tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
    ):
        self._rounds = list(rounds)
        self._by_id = {r.id: r for r in self._rounds}
        self.weight_tolerance = weight_tolerance
        self.validate()

    def validate(self) -> None:
        """Check round orders, derivation links and averaging weights.

        Raises:
            ConfigurationError: If any check fails
        """
        if len(self._by_id) != len(self._rounds):
            raise ConfigurationError("Round ids must be unique within an event")

        orders = [r.order for r in self._rounds]
        if any(o < 1 for o in orders):
            raise ConfigurationError(f"Round orders must be positive, got {orders}")
        if len(set(orders)) != len(orders):
            raise ConfigurationError(f"Round orders must be unique, got {orders}")

        for rnd in self._rounds:
            seen: set[str] = set()
            for criterion in rnd.criteria:
                if criterion.id in seen:
                    raise ConfigurationError(
                        f"Duplicate criterion {criterion.id!r} in round {rnd.id!r}"
                    )
                seen.add(criterion.id)
                if criterion.round_id != rnd.id:
                    raise ConfigurationError(
                        f"Criterion {criterion.id!r} belongs to round "
                        f"{criterion.round_id!r}, not {rnd.id!r}"
                    )
                if criterion.is_derived:
                    self._check_derivation(rnd, criterion)
            if isinstance(rnd.regime, AveragingRegime):
                self._check_weights(rnd)
            if isinstance(rnd.regime, ObjectiveRegime):
                self._check_categories(rnd)

    def _check_derivation(self, rnd: Round, criterion: Criterion) -> None:
        source = self._by_id.get(criterion.derived_from)
        if source is None:
            raise ConfigurationError(
                f"Criterion {criterion.id!r} derives from unknown round "
                f"{criterion.derived_from!r}"
            )
        if source.order >= rnd.order:
            raise ConfigurationError(
                f"Criterion {criterion.id!r} in round {rnd.id!r} (order {rnd.order}) "
                f"must derive from an earlier round, not {source.id!r} "
                f"(order {source.order})"
            )

    @staticmethod
    def _check_categories(rnd: Round) -> None:
        """Objective rounds only score their item categories, each once."""
        seen: set[str] = set()
        for criterion in rnd.scored_criteria:
            if criterion.category not in CATEGORIES:
                raise ConfigurationError(
                    f"Criterion {criterion.id!r} in objective round {rnd.id!r} is not one "
                    f"of the item categories {list(CATEGORIES)}"
                )
            if criterion.category in seen:
                raise ConfigurationError(
                    f"Category {criterion.category!r} appears twice in round {rnd.id!r}"
                )
            seen.add(criterion.category)

    def _check_weights(self, rnd: Round) -> None:
        scored = rnd.scored_criteria
        if not scored:
            return
        total = sum((c.weight_percent for c in scored), Decimal(0))
        if abs(total - 100) > self.weight_tolerance:
            raise ConfigurationError(
                f"Weights of round {rnd.id!r} sum to {total}, expected 100"
            )

    def rounds_in_order(self) -> list[Round]:
        """All rounds by increasing order, independent of storage order."""
        return sorted(self._rounds, key=lambda r: r.order)

    def get_round(self, round_id: str) -> Round:
        try:
            return self._by_id[round_id]
        except KeyError:
            raise KeyError(f"Unknown round: {round_id}") from None

    @staticmethod
    def evaluation_order(rnd: Round) -> list[Criterion]:
        """Scored criteria first, derived criteria last, each by display order."""
        def by_display(c: Criterion) -> int:
            return c.display_order

        return sorted(rnd.scored_criteria, key=by_display) + sorted(
            rnd.derived_criteria, key=by_display
        )

    def sources_of(self, rnd: Round) -> list[Round]:
        """Rounds that the given round's derived criteria read from."""
        ids = {c.derived_from for c in rnd.derived_criteria}
        return [r for r in self.rounds_in_order() if r.id in ids]

    def dependents_of(self, round_id: str) -> list[Round]:
        """Later rounds deriving from a round, directly or transitively, in order."""
        affected = {round_id}
        dependents = []
        for rnd in self.rounds_in_order():
            if rnd.id in affected:
                continue
            if any(c.derived_from in affected for c in rnd.derived_criteria):
                affected.add(rnd.id)
                dependents.append(rnd)
        return dependents

    def resolve_sources(
        self, rnd: Round, store: TallyStore
    ) -> dict[str, dict[str, Decimal]]:
        """Read the persisted source totals for every derived criterion of a round.

        Returns:
            source_round_id -> {contestant_id: round total}

        Raises:
            UnresolvedDependencyError: If a source round is not finished or has
                not produced a computed tally
        """
        totals: dict[str, dict[str, Decimal]] = {}
        for criterion in rnd.derived_criteria:
            source_id = criterion.derived_from
            if source_id in totals:
                continue
            source = self.get_round(source_id)
            if not source.is_finished or not store.has_round(source_id):
                logger.debug(
                    "Round %s waits on round %s (status %s)",
                    rnd.id, source_id, source.status.value,
                )
                raise UnresolvedDependencyError(rnd.id, source_id, criterion.id)
            totals[source_id] = store.round_totals(source_id)
        return totals
