"""Exception taxonomy for the risk scoring domain.

- AssessmentValidationError: request rejected before any analyzer runs.
- ReputationProviderError: reputation lookup failed; absorbed by the cache.
- HistoryLookupError: history read failed; analyzers proceed without history.
- PersistenceError: history write failed; logged, never surfaced.

Anything else raised inside an analyzer is converted into that analyzer's
degraded sub-score.
"""


class RiskEngineError(Exception):
    """Base class for risk scoring errors."""


class AssessmentValidationError(RiskEngineError, ValueError):
    """Required request fields are missing or malformed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ReputationProviderError(RiskEngineError):
    """The external reputation provider timed out, failed or returned garbage."""

    def __init__(self, message: str, ip: str | None = None) -> None:
        super().__init__(message)
        self.ip = ip


class HistoryLookupError(RiskEngineError):
    """A History Store read failed."""


class PersistenceError(RiskEngineError):
    """A History Store write failed."""
