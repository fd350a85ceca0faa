"""Access-time analysis."""

from ..config import TemporalThresholds
from ..history import HistoryStore
from ..models import AssessmentRequest, RiskFactor, TemporalScore
from .base import Analyzer
from .strategies import AccessPatternAnalyzer, NoAccessPatterns


class TemporalAnalyzer(Analyzer):
    factor = RiskFactor.TEMPORAL
    degraded_score = 5
    degraded_reason = "Unable to analyze temporal patterns"

    def __init__(
        self,
        history: HistoryStore,
        thresholds: TemporalThresholds | None = None,
        pattern_analyzer: AccessPatternAnalyzer | None = None,
    ) -> None:
        self._history = history
        self._thresholds = thresholds or TemporalThresholds()
        self._pattern_analyzer = pattern_analyzer or NoAccessPatterns()

    async def analyze(self, request: AssessmentRequest, **context) -> TemporalScore:
        score = 0
        reasons: list[str] = []
        # Hour is read in the offset the client reported the timestamp in
        access_time = request.timestamp
        hour = access_time.hour

        if self._thresholds.unusual_hour_start <= hour < self._thresholds.unusual_hour_end:
            score += 15
            reasons.append("Access during unusual hours")

        history = await self._read_history(
            self._history.get_access_history(request.session_id, self._thresholds.history_limit),
            [],
            "access",
        )
        if len(history) > self._thresholds.min_history_for_patterns:
            patterns = self._pattern_analyzer.analyze(history, access_time)
            score += patterns.score
            reasons.extend(patterns.reasons)

        return TemporalScore(
            score=min(score, 100),
            reasons=reasons,
            access_hour=hour,
            day_of_week=access_time.weekday(),
            historical_accesses=len(history),
        )

    def degraded(self, request: AssessmentRequest, **context) -> TemporalScore:
        return TemporalScore(
            score=self.degraded_score,
            reasons=[self.degraded_reason],
            degraded=True,
            access_hour=request.timestamp.hour,
            day_of_week=request.timestamp.weekday(),
        )
