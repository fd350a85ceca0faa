"""Abstract base class for risk analyzers."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from ..errors import HistoryLookupError
from ..models import AssessmentRequest, RiskFactor, SubScore

logger = structlog.get_logger()

T = TypeVar("T")


class Analyzer(ABC):
    """Base class for the five per-factor analyzers.

    Analyzers are async (most read the History Store) and must never abort an
    assessment: safe_analyze() converts any internal error into the
    analyzer's degraded sub-score.
    """

    factor: RiskFactor
    degraded_score: int
    degraded_reason: str

    @abstractmethod
    async def analyze(self, request: AssessmentRequest, **context) -> SubScore:
        """Score one request for this factor."""
        ...

    def degraded(self, request: AssessmentRequest, **context) -> SubScore:
        """Conservative result used when analyze() fails."""
        return SubScore(score=self.degraded_score, reasons=[self.degraded_reason], degraded=True)

    async def safe_analyze(self, request: AssessmentRequest, **context) -> SubScore:
        try:
            return await self.analyze(request, **context)
        except Exception:
            logger.warning(
                "analyzer_failed",
                factor=self.factor.value,
                session_id=request.session_id,
                exc_info=True,
            )
            return self.degraded(request, **context)

    async def _read_history(self, read: Awaitable[T], default: T, what: str) -> T:
        """Await a History Store read, treating a failed read as no history."""
        try:
            return await read
        except HistoryLookupError as exc:
            logger.warning(
                "history_lookup_failed", factor=self.factor.value, history=what, error=str(exc)
            )
            return default
