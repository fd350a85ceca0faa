"""Geolocation consistency analysis."""

import structlog

from ..config import GeoThresholds
from ..history import HistoryStore
from ..models import UNKNOWN, AssessmentRequest, GeolocationScore, Location, RiskFactor
from .base import Analyzer
from .strategies import ImpossibleTravelDetector, SpeedImpossibleTravel

logger = structlog.get_logger()


class GeolocationAnalyzer(Analyzer):
    """Scores the request location against the session's location history.

    The current location comes from the reputation lookup and is passed in
    as the ``location`` keyword.
    """

    factor = RiskFactor.GEOLOCATION
    degraded_score = 10
    degraded_reason = "Unable to analyze geolocation patterns"

    def __init__(
        self,
        history: HistoryStore,
        thresholds: GeoThresholds | None = None,
        travel_detector: ImpossibleTravelDetector | None = None,
    ) -> None:
        self._history = history
        self._thresholds = thresholds or GeoThresholds()
        self._travel_detector = travel_detector or SpeedImpossibleTravel(
            self._thresholds.impossible_travel_speed_kmh
        )
        self._high_risk = {
            c.strip().upper() for c in self._thresholds.high_risk_countries if c.strip()
        }

    async def analyze(
        self, request: AssessmentRequest, location: Location | None = None, **context
    ) -> GeolocationScore:
        if location is None or not location.is_known:
            return GeolocationScore(
                score=10,
                reasons=["Unable to determine location"],
                current_location=location,
            )

        score = 0
        reasons: list[str] = []
        history = await self._read_history(
            self._history.get_location_history(request.session_id, self._thresholds.history_limit),
            [],
            "location",
        )

        if history:
            travel = self._travel_detector.check(history[0], location, request.timestamp)
            if travel.is_impossible:
                score += 40
                reasons.append("Impossible travel detected")
                logger.info(
                    "impossible_travel_detected",
                    session_id=request.session_id,
                    distance_km=travel.distance_km,
                    speed_kmh=travel.speed_kmh,
                )

            countries = {
                h.country.upper() for h in history if h.country and h.country.lower() != UNKNOWN
            }
            if len(countries) > self._thresholds.max_distinct_countries:
                score += 20
                reasons.append("Frequent location changes")

        if {location.country.upper(), (location.iso_code or "").upper()} & self._high_risk:
            score += 15
            reasons.append("High-risk geographic region")

        return GeolocationScore(
            score=min(score, 100),
            reasons=reasons,
            current_location=location,
            historical_locations=len(history),
        )

    def degraded(
        self, request: AssessmentRequest, location: Location | None = None, **context
    ) -> GeolocationScore:
        return GeolocationScore(
            score=self.degraded_score,
            reasons=[self.degraded_reason],
            degraded=True,
            current_location=location,
        )
