"""Risk scoring domain."""

from .aggregator import AggregateResult, RiskAggregator
from .config import RiskConfig, default_config
from .engine import RiskScoringEngine, validate_request
from .errors import (
    AssessmentValidationError,
    HistoryLookupError,
    PersistenceError,
    ReputationProviderError,
    RiskEngineError,
)
from .models import (
    AssessmentRequest,
    RecommendedAction,
    ReputationRecord,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    SubScore,
)
from .provider import ProxyCheckClient
from .reputation_cache import ReputationCache

__all__ = [
    "AggregateResult",
    "AssessmentRequest",
    "AssessmentValidationError",
    "HistoryLookupError",
    "PersistenceError",
    "ProxyCheckClient",
    "RecommendedAction",
    "ReputationCache",
    "ReputationProviderError",
    "ReputationRecord",
    "RiskAggregator",
    "RiskAssessment",
    "RiskConfig",
    "RiskEngineError",
    "RiskFactor",
    "RiskLevel",
    "RiskScoringEngine",
    "SubScore",
    "default_config",
    "validate_request",
]
