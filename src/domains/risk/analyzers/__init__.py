"""Per-factor risk analyzers.

Exports the five analyzers in the fixed order their reasons are reported,
plus the pluggable strategies they accept.
"""

from .base import Analyzer
from .behavioral import BehavioralAnalyzer
from .device import DeviceFingerprintAnalyzer
from .geolocation import GeolocationAnalyzer
from .reputation import IPReputationAnalyzer
from .strategies import (
    AccessPatternAnalyzer,
    BehavioralAnomalyDetector,
    EventBurstDetector,
    ImpossibleTravelDetector,
    NoAccessPatterns,
    NoBehavioralAnomalies,
    NoImpossibleTravel,
    SpeedImpossibleTravel,
    StrategyResult,
    TravelCheck,
    haversine,
)
from .temporal import TemporalAnalyzer

__all__ = [
    "Analyzer",
    "haversine",
    # Analyzers
    "IPReputationAnalyzer",
    "DeviceFingerprintAnalyzer",
    "BehavioralAnalyzer",
    "GeolocationAnalyzer",
    "TemporalAnalyzer",
    # Strategies
    "AccessPatternAnalyzer",
    "BehavioralAnomalyDetector",
    "EventBurstDetector",
    "ImpossibleTravelDetector",
    "NoAccessPatterns",
    "NoBehavioralAnomalies",
    "NoImpossibleTravel",
    "SpeedImpossibleTravel",
    "StrategyResult",
    "TravelCheck",
]
