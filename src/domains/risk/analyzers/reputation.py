"""IP reputation analysis on top of the reputation cache."""

import ipaddress

from ..models import UNKNOWN, AssessmentRequest, Location, ReputationScore, RiskFactor
from ..reputation_cache import ReputationCache, fallback_record, is_local_address
from .base import Analyzer

PROXY_SCORE = 40
VPN_SCORE = 30
HIGH_RISK_SCORE = 50
MEDIUM_RISK_SCORE = 25
LOCALHOST_SCORE = 10


class IPReputationAnalyzer(Analyzer):
    factor = RiskFactor.IP_REPUTATION
    degraded_score = 20
    degraded_reason = "Unable to verify IP reputation"

    def __init__(self, cache: ReputationCache) -> None:
        self._cache = cache

    async def analyze(self, request: AssessmentRequest, **context) -> ReputationScore:
        ip = request.ip_address
        if not ip or is_local_address(ip):
            return ReputationScore(
                score=LOCALHOST_SCORE,
                reputation="localhost",
                connection_type="localhost",
                location=Location(country="LOCAL", region="LOCAL"),
            )

        if _is_ip_literal(ip):
            record = await self._cache.lookup(ip)
        else:
            # Unparsable addresses never reach the provider
            record = fallback_record(ip, "Malformed IP address")

        score = 0
        reasons: list[str] = []
        if record.is_proxy:
            score += PROXY_SCORE
            reasons.append("Proxy connection detected")
        if record.is_vpn_connection:
            score += VPN_SCORE
            reasons.append("VPN connection detected")
        if record.risk == "high":
            score += HIGH_RISK_SCORE
            reasons.append("High-risk IP address")
        elif record.risk == "medium":
            score += MEDIUM_RISK_SCORE
            reasons.append("Medium-risk IP address")

        return ReputationScore(
            score=min(score, 100),
            reasons=reasons,
            reputation=record.risk or UNKNOWN,
            connection_type=record.connection_type,
            location=record.location,
            is_malicious=record.risk == "high",
            is_proxy=record.is_proxy,
            is_vpn=record.is_vpn_connection,
            provider=record.provider,
            fallback=record.fallback,
        )

    def degraded(self, request: AssessmentRequest, **context) -> ReputationScore:
        return ReputationScore(
            score=self.degraded_score,
            reasons=[self.degraded_reason],
            degraded=True,
            reputation=UNKNOWN,
        )


def _is_ip_literal(ip: str) -> bool:
    try:
        ipaddress.ip_address(ip.removeprefix("::ffff:"))
    except ValueError:
        return False
    return True
