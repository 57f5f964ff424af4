"""Scoring regimes for aggregating judge-entered values."""

from .base import ScoringRegime

# Regime registry - import regime modules here to register them
_regimes: dict[str, type[ScoringRegime]] = {}


def register_regime(regime_class: type[ScoringRegime]) -> type[ScoringRegime]:
    """Decorator to register a scoring regime class under its key."""
    _regimes[regime_class.key] = regime_class
    return regime_class


def get_regime_class(key: str) -> type[ScoringRegime]:
    """Look up a registered regime class by key (e.g. "averaging")."""
    try:
        return _regimes[key]
    except KeyError:
        known = ", ".join(sorted(_regimes)) or "none"
        raise KeyError(f"Unknown scoring regime {key!r} (known: {known})") from None


def get_all_regimes() -> list[type[ScoringRegime]]:
    """Return all registered regime classes."""
    return list(_regimes.values())
