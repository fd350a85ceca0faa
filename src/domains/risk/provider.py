"""HTTP client for a ProxyCheck v2 compatible IP reputation provider.

The client never invents a result: timeouts, transport errors, non-2xx
responses and unparsable bodies are all raised as ReputationProviderError and
left to ReputationCache to absorb.
"""

from typing import Any, Protocol

import httpx
import structlog

from .errors import ReputationProviderError
from .models import UNKNOWN, ReputationRecord

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://proxycheck.io/v2"


class ReputationProvider(Protocol):
    async def check_ip(self, ip: str, timeout: float) -> ReputationRecord: ...

    async def check_ips(self, ips: list[str], timeout: float) -> dict[str, ReputationRecord]: ...


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_ip_entry(ip: str, entry: dict) -> ReputationRecord:
    """Map one provider entry onto a ReputationRecord, defaulting absent fields."""
    if not isinstance(entry, dict):
        raise ReputationProviderError(f"Malformed provider entry for {ip}", ip=ip)

    def text(key: str, default: str = UNKNOWN) -> str:
        value = entry.get(key)
        return str(value) if value not in (None, "") else default

    return ReputationRecord(
        ip=ip,
        proxy=text("proxy", "no"),
        connection_type=text("type"),
        risk=_normalize_risk(entry.get("risk")),
        vpn=text("vpn", "no"),
        country=text("country"),
        region=text("region"),
        city=text("city"),
        iso_code=text("isocode"),
        continent=text("continent"),
        provider=text("provider"),
        organisation=text("organisation"),
        asn=text("asn"),
        latitude=_optional_float(entry.get("latitude")),
        longitude=_optional_float(entry.get("longitude")),
        timezone=text("timezone"),
    )


def _normalize_risk(value: Any) -> str:
    """The provider reports risk either as a tier name or as a 0-100 number."""
    if value is None or value == "":
        return "low"
    if isinstance(value, str) and value.lower() in ("low", "medium", "high", "unknown"):
        return value.lower()
    numeric = _optional_float(value)
    if numeric is None:
        return UNKNOWN
    if numeric >= 67:
        return "high"
    if numeric >= 34:
        return "medium"
    return "low"


class ProxyCheckClient:
    """Async client for the reputation provider's single and batch lookups."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        user_agent: str = "sentinel-risk/0.1.0",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._user_agent = user_agent
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _params(self, batch: bool = False) -> dict[str, str]:
        params = {"vpn": "1", "asn": "1", "risk": "1"}
        if not batch:
            params.update({"node": "1", "time": "1", "inf": "1"})
        if self._api_key:
            params["key"] = self._api_key
        return params

    async def _get(self, path: str, params: dict[str, str], timeout: float) -> dict:
        url = f"{self._base_url}/{path}"
        try:
            response = await self._client.get(
                url,
                params=params,
                headers={"User-Agent": self._user_agent},
                timeout=timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise ReputationProviderError(f"Reputation lookup timed out after {timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise ReputationProviderError(
                f"Reputation provider returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ReputationProviderError(f"Reputation provider unreachable: {exc}") from exc
        except ValueError as exc:
            raise ReputationProviderError("Reputation provider returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise ReputationProviderError("Reputation provider returned a non-object body")
        if data.get("status") in ("error", "denied"):
            raise ReputationProviderError(
                f"Reputation provider refused the request: {data.get('message', 'no message')}"
            )
        return data

    async def check_ip(self, ip: str, timeout: float = 5.0) -> ReputationRecord:
        data = await self._get(ip, self._params(), timeout)
        entry = data.get(ip)
        if entry is None:
            raise ReputationProviderError(f"Reputation provider response has no entry for {ip}", ip=ip)
        record = parse_ip_entry(ip, entry)
        logger.debug("reputation_checked", ip=ip, risk=record.risk, proxy=record.proxy)
        return record

    async def check_ips(self, ips: list[str], timeout: float = 10.0) -> dict[str, ReputationRecord]:
        """Look up several IPs in one request. IPs absent from the reply are omitted."""
        if not ips:
            raise ReputationProviderError("No IP addresses supplied for batch lookup")
        data = await self._get(",".join(ips), self._params(batch=True), timeout)
        results: dict[str, ReputationRecord] = {}
        for ip in ips:
            entry = data.get(ip)
            if isinstance(entry, dict):
                results[ip] = parse_ip_entry(ip, entry)
        logger.debug("reputation_batch_checked", requested=len(ips), returned=len(results))
        return results

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
