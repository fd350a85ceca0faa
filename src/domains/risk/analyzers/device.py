"""Device fingerprint plausibility analysis."""

from ..config import DeviceThresholds
from ..history import HistoryStore
from ..models import AssessmentRequest, DeviceInfo, DeviceScore, RiskFactor
from .base import Analyzer


def _width(dimensions: str | None) -> int | None:
    """Width component of a "WxH" string, or None when unparsable."""
    if not dimensions:
        return None
    head = dimensions.lower().split("x", 1)[0].strip()
    try:
        return int(float(head))
    except ValueError:
        return None


def is_suspicious_user_agent(user_agent: str | None, patterns: tuple[str, ...]) -> bool:
    if not user_agent:
        return True
    lowered = user_agent.lower()
    return any(pattern in lowered for pattern in patterns)


def has_automation_indicators(info: DeviceInfo, thresholds: DeviceThresholds) -> bool:
    return (
        info.cookie_enabled is False
        or (
            info.hardware_concurrency is not None
            and info.hardware_concurrency > thresholds.max_hardware_concurrency
        )
        or (info.device_memory is not None and info.device_memory > thresholds.max_device_memory_gb)
        or not info.languages
    )


def has_inconsistent_device_info(info: DeviceInfo) -> bool:
    screen_width = _width(info.screen_resolution)
    window_width = _width(info.window_size)
    if screen_width is None or window_width is None:
        return False
    return window_width > screen_width


class DeviceFingerprintAnalyzer(Analyzer):
    factor = RiskFactor.DEVICE_FINGERPRINT
    degraded_score = 25
    degraded_reason = "Unable to analyze device fingerprint"

    def __init__(self, history: HistoryStore, thresholds: DeviceThresholds | None = None) -> None:
        self._history = history
        self._thresholds = thresholds or DeviceThresholds()

    async def analyze(self, request: AssessmentRequest, **context) -> DeviceScore:
        score = 0
        reasons: list[str] = []
        fingerprint = request.fingerprint
        fingerprint_id = fingerprint.visitor_id if fingerprint is not None else None
        known_device = None

        if not fingerprint_id:
            score += 30
            reasons.append("Unable to generate device fingerprint")
        else:
            known_device = await self._read_history(
                self._history.find_device_by_fingerprint(fingerprint_id), None, "device"
            )
            if known_device is None:
                score += 15
                reasons.append("New device detected")
            if (
                fingerprint.confidence is not None
                and fingerprint.confidence < self._thresholds.min_fingerprint_confidence
            ):
                score += 20
                reasons.append("Low fingerprint confidence")

        info = request.device_info
        if info is not None:
            user_agent = info.user_agent or request.user_agent
            if is_suspicious_user_agent(user_agent, self._thresholds.suspicious_user_agent_patterns):
                score += 25
                reasons.append("Suspicious user agent detected")
            if has_automation_indicators(info, self._thresholds):
                score += 35
                reasons.append("Automation indicators detected")
            if has_inconsistent_device_info(info):
                score += 20
                reasons.append("Inconsistent device information")

        return DeviceScore(
            score=min(score, 100),
            reasons=reasons,
            is_known_device=known_device is not None,
            fingerprint_id=fingerprint_id,
            confidence=(fingerprint.confidence or 0.0) if fingerprint is not None else 0.0,
        )

    def degraded(self, request: AssessmentRequest, **context) -> DeviceScore:
        return DeviceScore(score=self.degraded_score, reasons=[self.degraded_reason], degraded=True)
