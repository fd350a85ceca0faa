"""Weighted aggregation of factor sub-scores into a risk level and action."""

import math
from collections.abc import Mapping
from dataclasses import dataclass

from .config import RiskConfig, default_config
from .errors import RiskEngineError
from .models import FACTOR_ORDER, RecommendedAction, RiskFactor, RiskLevel, SubScore


@dataclass(frozen=True)
class AggregateResult:
    overall_score: int
    risk_level: RiskLevel
    recommended_action: RecommendedAction
    reasons: list[str]
    contributions: dict[RiskFactor, float]


def _round_half_up(value: float) -> int:
    # round(x, 9) absorbs float noise such as 7.499999999 from 0.3 * 25
    return math.floor(round(value, 9) + 0.5)


class RiskAggregator:
    """Combines the five sub-scores.

    Factors are looked up by RiskFactor identity, never by a derived string
    key, so every configured weight is applied to exactly one sub-score.
    """

    def __init__(self, config: RiskConfig | None = None) -> None:
        cfg = config or default_config
        self._levels = cfg.levels
        self._weights: dict[RiskFactor, float] = {
            RiskFactor.IP_REPUTATION: cfg.weights.ip_reputation,
            RiskFactor.DEVICE_FINGERPRINT: cfg.weights.device_fingerprint,
            RiskFactor.BEHAVIORAL: cfg.weights.behavioral,
            RiskFactor.GEOLOCATION: cfg.weights.geolocation,
            RiskFactor.TEMPORAL: cfg.weights.temporal,
        }
        self._actions: dict[RiskLevel, RecommendedAction] = {
            RiskLevel.LOW: RecommendedAction(cfg.levels.low_action),
            RiskLevel.MEDIUM: RecommendedAction(cfg.levels.medium_action),
            RiskLevel.HIGH: RecommendedAction(cfg.levels.high_action),
        }

    @property
    def weights(self) -> dict[RiskFactor, float]:
        return dict(self._weights)

    def contributions(self, sub_scores: Mapping[RiskFactor, SubScore]) -> dict[RiskFactor, float]:
        missing = [f.value for f in FACTOR_ORDER if f not in sub_scores]
        if missing:
            raise RiskEngineError(f"Missing sub-scores for factors: {', '.join(missing)}")
        return {f: sub_scores[f].score * self._weights[f] for f in FACTOR_ORDER}

    def overall_score(self, sub_scores: Mapping[RiskFactor, SubScore]) -> int:
        total = sum(self.contributions(sub_scores).values())
        return max(0, min(_round_half_up(total), 100))

    def classify(self, score: int) -> RiskLevel:
        if score <= self._levels.low_max:
            return RiskLevel.LOW
        if score <= self._levels.medium_max:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH

    def action_for(self, level: RiskLevel) -> RecommendedAction:
        return self._actions[level]

    @staticmethod
    def merge_reasons(sub_scores: Mapping[RiskFactor, SubScore]) -> list[str]:
        reasons: list[str] = []
        for factor in FACTOR_ORDER:
            sub = sub_scores.get(factor)
            if sub is not None:
                reasons.extend(sub.reasons)
        return reasons

    def aggregate(self, sub_scores: Mapping[RiskFactor, SubScore]) -> AggregateResult:
        contributions = self.contributions(sub_scores)
        overall = max(0, min(_round_half_up(sum(contributions.values())), 100))
        level = self.classify(overall)
        return AggregateResult(
            overall_score=overall,
            risk_level=level,
            recommended_action=self.action_for(level),
            reasons=self.merge_reasons(sub_scores),
            contributions=contributions,
        )
