"""Risk scoring configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class FactorWeights:
    """Contribution of each analyzer to the overall score."""

    ip_reputation: float = 0.30
    device_fingerprint: float = 0.25
    behavioral: float = 0.20
    geolocation: float = 0.15
    temporal: float = 0.10

    def __post_init__(self) -> None:
        total = (
            self.ip_reputation
            + self.device_fingerprint
            + self.behavioral
            + self.geolocation
            + self.temporal
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Factor weights must sum to 1.0, got {total:.4f}")


@dataclass
class RiskLevelThresholds:
    # score <= low_max -> LOW, score <= medium_max -> MEDIUM, otherwise HIGH
    low_max: int = 30
    medium_max: int = 70
    low_action: str = "allow"
    medium_action: str = "review"
    high_action: str = "block"

    def __post_init__(self) -> None:
        if not 0 <= self.low_max < self.medium_max <= 100:
            raise ValueError(
                f"Risk level bounds must satisfy 0 <= low_max < medium_max <= 100, "
                f"got low_max={self.low_max} medium_max={self.medium_max}"
            )


@dataclass
class ReputationSettings:
    cache_ttl_seconds: float = 3600.0
    cache_capacity: int = 1000
    # Fraction of the cache dropped (oldest first) when capacity is exceeded
    eviction_fraction: float = 0.10
    lookup_timeout_seconds: float = 5.0
    batch_size: int = 100

    @property
    def batch_timeout_seconds(self) -> float:
        return self.lookup_timeout_seconds * 2


@dataclass
class DeviceThresholds:
    max_hardware_concurrency: int = 16
    max_device_memory_gb: float = 32.0
    min_fingerprint_confidence: float = 0.5
    suspicious_user_agent_patterns: tuple[str, ...] = (
        "headless",
        "phantom",
        "selenium",
        "webdriver",
        "bot",
        "crawler",
    )


@dataclass
class BehavioralThresholds:
    checkout_min_session_seconds: float = 30.0
    min_page_load_ms: float = 100.0
    history_limit: int = 100
    # Event burst detection, off unless enabled
    burst_detection_enabled: bool = False
    burst_window_seconds: float = 10.0
    burst_max_events: int = 20


@dataclass
class GeoThresholds:
    impossible_travel_speed_kmh: float = 900.0
    max_distinct_countries: int = 3
    # ISO 3166 alpha-2 codes or country names, matched case-insensitively
    high_risk_countries: tuple[str, ...] = ()
    history_limit: int = 10


@dataclass
class TemporalThresholds:
    unusual_hour_start: int = 2
    unusual_hour_end: int = 6  # exclusive
    min_history_for_patterns: int = 5
    history_limit: int = 50


@dataclass
class RiskConfig:
    weights: FactorWeights = field(default_factory=FactorWeights)
    levels: RiskLevelThresholds = field(default_factory=RiskLevelThresholds)
    reputation: ReputationSettings = field(default_factory=ReputationSettings)
    device: DeviceThresholds = field(default_factory=DeviceThresholds)
    behavioral: BehavioralThresholds = field(default_factory=BehavioralThresholds)
    geo: GeoThresholds = field(default_factory=GeoThresholds)
    temporal: TemporalThresholds = field(default_factory=TemporalThresholds)

    @classmethod
    def from_env(cls) -> "RiskConfig":
        """Load config with env var overrides. Env vars use RISK_ prefix."""
        config = cls()

        # Weights are replaced as a group so the sum check runs once
        weight_names = ("IP_REPUTATION", "DEVICE_FINGERPRINT", "BEHAVIORAL", "GEOLOCATION", "TEMPORAL")
        if any(os.getenv(f"RISK_WEIGHT_{name}") for name in weight_names):
            defaults = FactorWeights()
            config.weights = FactorWeights(
                ip_reputation=float(os.getenv("RISK_WEIGHT_IP_REPUTATION", defaults.ip_reputation)),
                device_fingerprint=float(
                    os.getenv("RISK_WEIGHT_DEVICE_FINGERPRINT", defaults.device_fingerprint)
                ),
                behavioral=float(os.getenv("RISK_WEIGHT_BEHAVIORAL", defaults.behavioral)),
                geolocation=float(os.getenv("RISK_WEIGHT_GEOLOCATION", defaults.geolocation)),
                temporal=float(os.getenv("RISK_WEIGHT_TEMPORAL", defaults.temporal)),
            )

        # Risk level overrides
        low_max = os.getenv("RISK_LOW_MAX")
        medium_max = os.getenv("RISK_MEDIUM_MAX")
        if low_max or medium_max:
            config.levels = RiskLevelThresholds(
                low_max=int(low_max) if low_max else config.levels.low_max,
                medium_max=int(medium_max) if medium_max else config.levels.medium_max,
                low_action=config.levels.low_action,
                medium_action=config.levels.medium_action,
                high_action=config.levels.high_action,
            )
        if v := os.getenv("RISK_LOW_ACTION"):
            config.levels.low_action = v
        if v := os.getenv("RISK_MEDIUM_ACTION"):
            config.levels.medium_action = v
        if v := os.getenv("RISK_HIGH_ACTION"):
            config.levels.high_action = v

        # Reputation cache overrides
        if v := os.getenv("RISK_CACHE_TTL_SECONDS"):
            config.reputation.cache_ttl_seconds = float(v)
        if v := os.getenv("RISK_CACHE_CAPACITY"):
            config.reputation.cache_capacity = int(v)
        if v := os.getenv("RISK_LOOKUP_TIMEOUT_SECONDS"):
            config.reputation.lookup_timeout_seconds = float(v)

        # Device overrides
        if v := os.getenv("RISK_MAX_HARDWARE_CONCURRENCY"):
            config.device.max_hardware_concurrency = int(v)
        if v := os.getenv("RISK_MAX_DEVICE_MEMORY_GB"):
            config.device.max_device_memory_gb = float(v)

        # Behavioral overrides
        if v := os.getenv("RISK_BURST_DETECTION_ENABLED"):
            config.behavioral.burst_detection_enabled = v.strip().lower() in ("1", "true", "yes")
        if v := os.getenv("RISK_BURST_WINDOW_SECONDS"):
            config.behavioral.burst_window_seconds = float(v)
        if v := os.getenv("RISK_BURST_MAX_EVENTS"):
            config.behavioral.burst_max_events = int(v)

        # Geo overrides
        if v := os.getenv("RISK_HIGH_RISK_COUNTRIES"):
            config.geo.high_risk_countries = tuple(
                c.strip().upper() for c in v.split(",") if c.strip()
            )
        if v := os.getenv("RISK_IMPOSSIBLE_TRAVEL_SPEED_KMH"):
            config.geo.impossible_travel_speed_kmh = float(v)

        return config


# Module-level default instance
default_config = RiskConfig()
