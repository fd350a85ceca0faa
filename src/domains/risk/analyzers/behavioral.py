"""Session timing and interaction analysis."""

from ..config import BehavioralThresholds
from ..history import HistoryStore
from ..models import AssessmentRequest, BehavioralScore, RiskFactor
from .base import Analyzer
from .strategies import BehavioralAnomalyDetector, EventBurstDetector, NoBehavioralAnomalies


class BehavioralAnalyzer(Analyzer):
    factor = RiskFactor.BEHAVIORAL
    degraded_score = 15
    degraded_reason = "Unable to analyze behavioral patterns"

    def __init__(
        self,
        history: HistoryStore,
        thresholds: BehavioralThresholds | None = None,
        anomaly_detector: BehavioralAnomalyDetector | None = None,
    ) -> None:
        self._history = history
        self._thresholds = thresholds or BehavioralThresholds()
        if anomaly_detector is None:
            anomaly_detector = self._default_detector(self._thresholds)
        self._anomaly_detector = anomaly_detector

    @staticmethod
    def _default_detector(thresholds: BehavioralThresholds) -> BehavioralAnomalyDetector:
        if thresholds.burst_detection_enabled:
            return EventBurstDetector(
                window_seconds=thresholds.burst_window_seconds,
                max_events=thresholds.burst_max_events,
            )
        return NoBehavioralAnomalies()

    async def analyze(self, request: AssessmentRequest, **context) -> BehavioralScore:
        score = 0
        reasons: list[str] = []
        history = await self._read_history(
            self._history.get_behavior_history(request.session_id, self._thresholds.history_limit),
            [],
            "behavior",
        )

        info = request.behavioral_info
        session_duration_ms = 0.0
        if info is not None and info.session_start is not None:
            elapsed = (request.timestamp - info.session_start).total_seconds()
            session_duration_ms = elapsed * 1000
            if (
                request.event.lower() == "checkout"
                and elapsed < self._thresholds.checkout_min_session_seconds
            ):
                score += 30
                reasons.append("Very short session before checkout")

        if (
            info is not None
            and info.page_load_time is not None
            and info.page_load_time < self._thresholds.min_page_load_ms
        ):
            score += 15
            reasons.append("Unusually fast page interaction")

        if history:
            anomalies = self._anomaly_detector.detect(history, request)
            score += anomalies.score
            reasons.extend(anomalies.reasons)

        return BehavioralScore(
            score=min(score, 100),
            reasons=reasons,
            session_duration_ms=session_duration_ms,
            historical_data_points=len(history),
        )

    def degraded(self, request: AssessmentRequest, **context) -> BehavioralScore:
        return BehavioralScore(score=self.degraded_score, reasons=[self.degraded_reason], degraded=True)
