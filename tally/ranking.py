"""Tie-aware fractional ranking.

Scores are ranked in descending order. Every maximal run of equal scores
shares the mean of the 1-indexed positions it occupies, so four contestants
scoring 90, 85, 85, 70 rank 1, 2.5, 2.5, 4.
"""

from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from decimal import Decimal
from typing import TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def rank_items(items: Iterable[T], key: Callable[[T], Decimal]) -> list[tuple[T, Decimal]]:
    """Rank items by descending key.

    Returns (item, rank) pairs ordered best first. Items with equal keys keep
    their input order.
    """
    ordered = sorted(items, key=key, reverse=True)
    ranked: list[tuple[T, Decimal]] = []

    i = 0
    while i < len(ordered):
        j = i
        while j + 1 < len(ordered) and key(ordered[j + 1]) == key(ordered[i]):
            j += 1
        rank = Decimal(i + 1 + j + 1) / 2
        for k in range(i, j + 1):
            ranked.append((ordered[k], rank))
        i = j + 1

    return ranked


def fractional_ranks(scores: Sequence[Decimal]) -> list[Decimal]:
    """Rank a list of scores, returning ranks aligned with the input order."""
    ranked = rank_items(range(len(scores)), key=lambda i: scores[i])
    ranks = [Decimal(0)] * len(scores)
    for index, rank in ranked:
        ranks[index] = rank
    return ranks


def rank_mapping(scores: Mapping[K, Decimal]) -> dict[K, Decimal]:
    """Rank a {key: score} mapping, returning {key: rank}."""
    return {k: rank for k, rank in rank_items(scores, key=lambda k: scores[k])}
