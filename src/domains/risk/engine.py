"""Risk scoring pipeline: validate -> analyzers (concurrent) -> aggregate -> persist."""

import asyncio
import time

import structlog

from .aggregator import RiskAggregator
from .analyzers import (
    AccessPatternAnalyzer,
    BehavioralAnalyzer,
    BehavioralAnomalyDetector,
    DeviceFingerprintAnalyzer,
    GeolocationAnalyzer,
    ImpossibleTravelDetector,
    IPReputationAnalyzer,
    TemporalAnalyzer,
)
from .config import RiskConfig, default_config
from .errors import AssessmentValidationError
from .history import HistoryStore
from .models import (
    AssessmentRequest,
    LocationRecord,
    ReputationScore,
    RiskAssessment,
    RiskFactor,
)
from .reputation_cache import ReputationCache, is_local_address

logger = structlog.get_logger()

MODEL_VERSION = "rules-v1"


def validate_request(request: AssessmentRequest) -> None:
    """Reject requests missing a required field. Runs before any analyzer.

    Optional fields are never grounds for rejection; an unusable IP address
    is scored by the reputation analyzer like any other failed lookup.
    """
    if not request.session_id or not request.session_id.strip():
        raise AssessmentValidationError("Session ID is required", field="session_id")
    if not request.event or not request.event.strip():
        raise AssessmentValidationError("Event type is required", field="event")


class RiskScoringEngine:
    """Orchestrates the five analyzers for one request.

    The engine holds no per-request state; the reputation cache and the
    history store are injected and shared across concurrent calls.
    """

    def __init__(
        self,
        cache: ReputationCache,
        history: HistoryStore,
        config: RiskConfig | None = None,
        travel_detector: ImpossibleTravelDetector | None = None,
        anomaly_detector: BehavioralAnomalyDetector | None = None,
        pattern_analyzer: AccessPatternAnalyzer | None = None,
    ) -> None:
        self._config = config or default_config
        self._cache = cache
        self._history = history
        self._reputation = IPReputationAnalyzer(cache)
        self._device = DeviceFingerprintAnalyzer(history, self._config.device)
        self._behavioral = BehavioralAnalyzer(
            history, self._config.behavioral, anomaly_detector=anomaly_detector
        )
        self._geolocation = GeolocationAnalyzer(
            history, self._config.geo, travel_detector=travel_detector
        )
        self._temporal = TemporalAnalyzer(
            history, self._config.temporal, pattern_analyzer=pattern_analyzer
        )
        self._aggregator = RiskAggregator(self._config)
        logger.info(
            "risk_engine_initialized",
            version=MODEL_VERSION,
            weights={f.value: w for f, w in self._aggregator.weights.items()},
        )

    @property
    def cache(self) -> ReputationCache:
        return self._cache

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def aggregator(self) -> RiskAggregator:
        return self._aggregator

    async def assess_risk(self, request: AssessmentRequest) -> RiskAssessment:
        validate_request(request)
        start = time.perf_counter()
        logger.info("risk_assessment_started", session_id=request.session_id, event_type=request.event)

        reputation_task = asyncio.create_task(self._reputation.safe_analyze(request))
        try:
            device, behavioral, geolocation, temporal = await asyncio.gather(
                self._device.safe_analyze(request),
                self._behavioral.safe_analyze(request),
                self._geolocation_after(reputation_task, request),
                self._temporal.safe_analyze(request),
            )
            reputation = await reputation_task
        finally:
            if not reputation_task.done():
                reputation_task.cancel()

        sub_scores = {
            RiskFactor.IP_REPUTATION: reputation,
            RiskFactor.DEVICE_FINGERPRINT: device,
            RiskFactor.BEHAVIORAL: behavioral,
            RiskFactor.GEOLOCATION: geolocation,
            RiskFactor.TEMPORAL: temporal,
        }
        result = self._aggregator.aggregate(sub_scores)

        assessment = RiskAssessment(
            session_id=request.session_id,
            event=request.event,
            timestamp=request.timestamp,
            ip_reputation=reputation,
            device_fingerprint=device,
            behavioral=behavioral,
            geolocation=geolocation,
            temporal=temporal,
            overall_score=result.overall_score,
            risk_level=result.risk_level,
            recommended_action=result.recommended_action,
            reasons=result.reasons,
            model_version=MODEL_VERSION,
        )

        # Stamped before persisting so the stored row matches the returned one
        assessment.processing_time_ms = round((time.perf_counter() - start) * 1000, 2)
        await self._persist(assessment, request)

        logger.info(
            "risk_assessment_completed",
            session_id=request.session_id,
            event_type=request.event,
            overall_score=assessment.overall_score,
            risk_level=assessment.risk_level.value,
            recommended_action=assessment.recommended_action.value,
            degraded=[f.value for f, s in sub_scores.items() if s.degraded],
            processing_time_ms=assessment.processing_time_ms,
        )
        return assessment

    def assess_risk_blocking(self, request: AssessmentRequest) -> RiskAssessment:
        """Synchronous entry point for callers without a running event loop."""
        return asyncio.run(self.assess_risk(request))

    async def _geolocation_after(
        self, reputation_task: "asyncio.Task[ReputationScore]", request: AssessmentRequest
    ):
        reputation = await reputation_task
        return await self._geolocation.safe_analyze(request, location=reputation.location)

    async def _persist(self, assessment: RiskAssessment, request: AssessmentRequest) -> None:
        """Best-effort write of the assessment and the observed location."""
        try:
            await self._history.store_risk_assessment(assessment)
        except Exception:
            logger.warning(
                "risk_assessment_store_failed", session_id=assessment.session_id, exc_info=True
            )

        location = assessment.ip_reputation.location
        if (
            not request.ip_address
            or is_local_address(request.ip_address)
            or not location.is_known
            or assessment.ip_reputation.fallback
        ):
            return
        try:
            await self._history.record_location(
                LocationRecord(
                    session_id=request.session_id,
                    ip_address=request.ip_address,
                    country=location.country,
                    region=location.region,
                    city=location.city,
                    latitude=location.latitude,
                    longitude=location.longitude,
                    recorded_at=request.timestamp,
                )
            )
        except Exception:
            logger.warning(
                "location_record_failed", session_id=assessment.session_id, exc_info=True
            )
