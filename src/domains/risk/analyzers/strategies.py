"""Swappable heuristics used inside the analyzers.

Each analyzer takes one strategy for the part of its logic that is expected
to improve over time. No-op implementations keep the baseline rules
authoritative.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from ..models import AccessRecord, AssessmentRequest, BehaviorEvent, Location, LocationRecord

EARTH_RADIUS_KM = 6371.0


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance in km between two lat/lon points."""
    lat1_r, lon1_r = math.radians(lat1), math.radians(lon1)
    lat2_r, lon2_r = math.radians(lat2), math.radians(lon2)
    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


@dataclass(frozen=True)
class StrategyResult:
    score: int = 0
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TravelCheck:
    is_impossible: bool
    distance_km: float | None = None
    speed_kmh: float | None = None


# ---------------------------------------------------------------------------
# Impossible travel
# ---------------------------------------------------------------------------


class ImpossibleTravelDetector(Protocol):
    def check(self, previous: LocationRecord, current: Location, now: datetime) -> TravelCheck: ...


class NoImpossibleTravel:
    def check(self, previous: LocationRecord, current: Location, now: datetime) -> TravelCheck:
        return TravelCheck(is_impossible=False)


class SpeedImpossibleTravel:
    """Flags consecutive locations that imply a speed above max_speed_kmh."""

    def __init__(self, max_speed_kmh: float = 900.0) -> None:
        self.max_speed_kmh = max_speed_kmh

    def check(self, previous: LocationRecord, current: Location, now: datetime) -> TravelCheck:
        coords = (previous.latitude, previous.longitude, current.latitude, current.longitude)
        if any(v is None for v in coords):
            return TravelCheck(is_impossible=False)

        distance_km = haversine(*coords)
        seconds = (now - previous.recorded_at).total_seconds()
        if seconds <= 0:
            # Same instant: only a real move counts
            return TravelCheck(is_impossible=distance_km > 1.0, distance_km=distance_km)

        speed_kmh = distance_km / (seconds / 3600)
        return TravelCheck(
            is_impossible=speed_kmh > self.max_speed_kmh,
            distance_km=distance_km,
            speed_kmh=speed_kmh,
        )


# ---------------------------------------------------------------------------
# Behavioral anomalies
# ---------------------------------------------------------------------------


class BehavioralAnomalyDetector(Protocol):
    def detect(self, history: list[BehaviorEvent], request: AssessmentRequest) -> StrategyResult: ...


class NoBehavioralAnomalies:
    def detect(self, history: list[BehaviorEvent], request: AssessmentRequest) -> StrategyResult:
        return StrategyResult()


class EventBurstDetector:
    """Flags sessions that emitted too many events just before this request."""

    def __init__(self, window_seconds: float = 10.0, max_events: int = 20, score: int = 20) -> None:
        self.window_seconds = window_seconds
        self.max_events = max_events
        self.score = score

    def detect(self, history: list[BehaviorEvent], request: AssessmentRequest) -> StrategyResult:
        recent = [
            e
            for e in history
            if 0 <= (request.timestamp - e.timestamp).total_seconds() <= self.window_seconds
        ]
        if len(recent) <= self.max_events:
            return StrategyResult()
        return StrategyResult(score=self.score, reasons=["Burst of automated-looking activity"])


# ---------------------------------------------------------------------------
# Access patterns
# ---------------------------------------------------------------------------


class AccessPatternAnalyzer(Protocol):
    def analyze(self, history: list[AccessRecord], access_time: datetime) -> StrategyResult: ...


class NoAccessPatterns:
    def analyze(self, history: list[AccessRecord], access_time: datetime) -> StrategyResult:
        return StrategyResult()
