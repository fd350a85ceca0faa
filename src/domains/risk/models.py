"""Pydantic models for the risk scoring domain."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UNKNOWN = "unknown"


class _WireModel(BaseModel):
    """Accepts both snake_case and the camelCase names sent by the browser SDK."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _ensure_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# Naive datetimes from clients are taken as UTC
UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


class RiskFactor(StrEnum):
    IP_REPUTATION = "ip_reputation"
    DEVICE_FINGERPRINT = "device_fingerprint"
    BEHAVIORAL = "behavioral"
    GEOLOCATION = "geolocation"
    TEMPORAL = "temporal"


# Fixed analyzer order, also the order reasons are reported in
FACTOR_ORDER: tuple[RiskFactor, ...] = (
    RiskFactor.IP_REPUTATION,
    RiskFactor.DEVICE_FINGERPRINT,
    RiskFactor.BEHAVIORAL,
    RiskFactor.GEOLOCATION,
    RiskFactor.TEMPORAL,
)


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RecommendedAction(StrEnum):
    ALLOW = "allow"
    REVIEW = "review"
    BLOCK = "block"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class DeviceInfo(_WireModel):
    user_agent: str | None = None
    screen_resolution: str | None = None  # "1920x1080"
    window_size: str | None = None  # "1280x720"
    hardware_concurrency: int | None = None
    device_memory: float | None = None  # GB, as reported by navigator.deviceMemory
    cookie_enabled: bool | None = None
    languages: list[str] | None = None
    language: str | None = None
    timezone: str | None = None
    platform: str | None = None


class BehavioralInfo(_WireModel):
    session_start: UtcDatetime | None = None
    page_load_time: float | None = None  # milliseconds
    current_url: str | None = None


class Fingerprint(_WireModel):
    visitor_id: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    components: dict = Field(default_factory=dict)


class AssessmentRequest(_WireModel):
    session_id: str
    event: str
    ip_address: str | None = None
    user_agent: str | None = None
    device_info: DeviceInfo | None = None
    behavioral_info: BehavioralInfo | None = None
    fingerprint: Fingerprint | None = None
    timestamp: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------


class Location(BaseModel):
    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    latitude: float | None = None
    longitude: float | None = None
    iso_code: str | None = None

    @property
    def is_known(self) -> bool:
        return bool(self.country) and self.country.lower() != UNKNOWN


class ReputationRecord(BaseModel):
    ip: str
    proxy: str = "no"  # yes / no / unknown
    connection_type: str = UNKNOWN
    risk: str = "low"  # low / medium / high / unknown / localhost
    vpn: str = "no"  # yes / no / unknown
    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    iso_code: str = UNKNOWN
    continent: str = UNKNOWN
    provider: str = UNKNOWN
    organisation: str = UNKNOWN
    asn: str = UNKNOWN
    latitude: float | None = None
    longitude: float | None = None
    timezone: str = UNKNOWN
    cached_at: datetime | None = None
    ttl_expiry: datetime | None = None
    fallback: bool = False
    error: str | None = None

    @property
    def is_proxy(self) -> bool:
        return self.proxy == "yes"

    @property
    def is_vpn_connection(self) -> bool:
        return self.connection_type.upper() == "VPN"

    @property
    def location(self) -> Location:
        return Location(
            country=self.country or UNKNOWN,
            region=self.region or UNKNOWN,
            city=self.city or UNKNOWN,
            latitude=self.latitude,
            longitude=self.longitude,
            iso_code=self.iso_code if self.iso_code and self.iso_code != UNKNOWN else None,
        )


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------


class SubScore(BaseModel):
    score: int = Field(default=0, ge=0, le=100)
    reasons: list[str] = []
    degraded: bool = False

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, v):
        return max(0, min(int(round(v)), 100))


class ReputationScore(SubScore):
    reputation: str = UNKNOWN
    connection_type: str = UNKNOWN
    location: Location = Field(default_factory=Location)
    is_malicious: bool = False
    is_proxy: bool = False
    is_vpn: bool = False
    provider: str | None = None
    fallback: bool = False


class DeviceScore(SubScore):
    is_known_device: bool = False
    fingerprint_id: str | None = None
    confidence: float = 0.0


class BehavioralScore(SubScore):
    session_duration_ms: float = 0.0
    historical_data_points: int = 0


class GeolocationScore(SubScore):
    current_location: Location | None = None
    historical_locations: int = 0


class TemporalScore(SubScore):
    access_hour: int = 0
    day_of_week: int = 0
    historical_accesses: int = 0


class RiskAssessment(BaseModel):
    session_id: str
    event: str
    timestamp: datetime
    ip_reputation: ReputationScore
    device_fingerprint: DeviceScore
    behavioral: BehavioralScore
    geolocation: GeolocationScore
    temporal: TemporalScore
    overall_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    recommended_action: RecommendedAction
    reasons: list[str] = []
    processing_time_ms: float = 0.0
    model_version: str = "rules-v1"

    def factor_score(self, factor: RiskFactor) -> SubScore:
        return getattr(self, factor.value)


# ---------------------------------------------------------------------------
# History Store records
# ---------------------------------------------------------------------------


class DeviceRecord(BaseModel):
    fingerprint_id: str
    session_id: str
    confidence: float | None = None
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    seen_count: int = 1


class BehaviorEvent(BaseModel):
    session_id: str
    event_type: str
    event_data: dict = Field(default_factory=dict)
    url: str | None = None
    timestamp: datetime


class LocationRecord(BaseModel):
    session_id: str
    ip_address: str
    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None
    recorded_at: datetime


class AccessRecord(BaseModel):
    timestamp: datetime
    event: str
    score: int
    level: str


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class SessionInitRequest(_WireModel):
    session_id: str = Field(min_length=1)
    referrer: str | None = None
    url: str | None = None


class TrackEventRequest(_WireModel):
    session_id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    data: dict = Field(default_factory=dict)
    url: str | None = None
