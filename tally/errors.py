"""Exception hierarchy for the tally engine."""

from enum import Enum


class TallyError(Exception):
    """Base class for every error raised by the tally engine."""
    pass


class RejectReason(str, Enum):
    """Why a score submission was rejected."""
    MISSING_VALUE = "missing_value"
    OUT_OF_RANGE = "out_of_range"
    DERIVED_CRITERION = "derived_criterion"
    UNKNOWN_CRITERION = "unknown_criterion"
    NOT_NUMERIC = "not_numeric"
    ROUND_NOT_OPEN = "round_not_open"
    INACTIVE_CONTESTANT = "inactive_contestant"
    UNKNOWN_JUDGE = "unknown_judge"


class ValidationError(TallyError, ValueError):
    """Raised when a submission is rejected at the ledger boundary.

    The whole batch is rejected; nothing is applied.
    """

    def __init__(
        self,
        reason: RejectReason,
        message: str,
        *,
        criterion_id: str | None = None,
        contestant_id: str | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.criterion_id = criterion_id
        self.contestant_id = contestant_id


class UnresolvedDependencyError(TallyError):
    """Raised when a derived criterion's source round has no finished total.

    The round is not ready to tally yet. This is recoverable: it becomes
    tally-able once the source round finishes.
    """

    def __init__(self, round_id: str, source_round_id: str, criterion_id: str):
        super().__init__(
            f"Round {round_id!r} is not ready to tally: criterion {criterion_id!r} "
            f"derives from round {source_round_id!r}, which has no finished total."
        )
        self.round_id = round_id
        self.source_round_id = source_round_id
        self.criterion_id = criterion_id


class ConfigurationError(TallyError, ValueError):
    """Raised when rounds or criteria are set up inconsistently."""
    pass


class LoaderError(TallyError):
    """Raised when an event definition cannot be fetched or read."""
    pass
