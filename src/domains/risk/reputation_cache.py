"""Bounded, TTL-based cache in front of the IP reputation provider.

Reads are lock-free. Inserts, evictions and clears are serialized on a single
asyncio.Lock. Concurrent lookups of the same uncached IP share one in-flight
provider call. Expiry is checked lazily at read time; there is no sweeper.
Provider failures never escape: the caller always receives a record, possibly
a synthesized fallback.
"""

import asyncio
import ipaddress
import math
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta

import structlog

from .config import ReputationSettings
from .errors import ReputationProviderError
from .models import UNKNOWN, ReputationRecord
from .provider import ReputationProvider

logger = structlog.get_logger()

LOCALHOST_NAMES = frozenset({"localhost"})


def is_local_address(ip: str | None) -> bool:
    """True for loopback and unspecified addresses (and the literal 'localhost')."""
    if not ip:
        return False
    if ip.lower() in LOCALHOST_NAMES:
        return True
    try:
        addr = ipaddress.ip_address(ip.removeprefix("::ffff:"))
    except ValueError:
        return False
    return addr.is_loopback or addr.is_unspecified


def fallback_record(ip: str, error: str | None = None) -> ReputationRecord:
    """Synthesize a record for an IP whose provider lookup failed."""
    if is_local_address(ip):
        return ReputationRecord(
            ip=ip,
            proxy="no",
            connection_type="localhost",
            risk="localhost",
            vpn="no",
            country="LOCAL",
            fallback=True,
            error=error,
        )
    return ReputationRecord(
        ip=ip,
        proxy=UNKNOWN,
        connection_type=UNKNOWN,
        risk=UNKNOWN,
        vpn=UNKNOWN,
        fallback=True,
        error=error,
    )


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    provider_calls: int = 0
    batch_calls: int = 0
    fallbacks: int = 0
    evictions: int = 0


@dataclass
class _Entry:
    record: ReputationRecord
    cached_at: float


class ReputationCache:
    def __init__(
        self,
        provider: ReputationProvider,
        settings: ReputationSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._settings = settings or ReputationSettings()
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._write_lock = asyncio.Lock()
        self._inflight: dict[str, asyncio.Task] = {}
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, ip: str) -> bool:
        return self.get_cached(ip) is not None

    @property
    def capacity(self) -> int:
        return self._settings.cache_capacity

    @property
    def provider(self) -> ReputationProvider:
        return self._provider

    def get_cached(self, ip: str) -> ReputationRecord | None:
        """Return the cached record for ip unless it is absent or expired."""
        entry = self._entries.get(ip)
        if entry is None:
            return None
        if self._clock() - entry.cached_at > self._settings.cache_ttl_seconds:
            return None
        return entry.record

    async def lookup(self, ip: str) -> ReputationRecord:
        cached = self.get_cached(ip)
        if cached is not None:
            self._stats.hits += 1
            logger.debug("reputation_cache_hit", ip=ip)
            return cached

        self._stats.misses += 1
        task = self._inflight.get(ip)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(ip))
            self._inflight[ip] = task
            task.add_done_callback(lambda _t, key=ip: self._inflight.pop(key, None))
        # One cancelled caller must not cancel the shared fetch
        return await asyncio.shield(task)

    async def lookup_many(self, ips: list[str]) -> dict[str, ReputationRecord]:
        """Look up many IPs, batching provider calls for the uncached ones.

        A failed batch degrades to one lookup() per IP, each with its own
        cache and fallback behavior.
        """
        unique = list(dict.fromkeys(ip for ip in ips if ip))
        results: dict[str, ReputationRecord] = {}
        missing: list[str] = []
        for ip in unique:
            cached = self.get_cached(ip)
            if cached is not None:
                self._stats.hits += 1
                results[ip] = cached
            else:
                missing.append(ip)

        batch_size = max(1, self._settings.batch_size)
        for start in range(0, len(missing), batch_size):
            chunk = missing[start : start + batch_size]
            results.update(await self._lookup_chunk(chunk))

        return {ip: results[ip] for ip in unique}

    async def _lookup_chunk(self, chunk: list[str]) -> dict[str, ReputationRecord]:
        self._stats.batch_calls += 1
        timeout = self._settings.batch_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                fetched = await self._provider.check_ips(chunk, timeout=timeout)
        except (ReputationProviderError, TimeoutError) as exc:
            logger.warning("reputation_batch_failed", count=len(chunk), error=str(exc))
            fetched = {}
        except Exception:
            logger.warning("reputation_batch_failed", count=len(chunk), exc_info=True)
            fetched = {}

        results: dict[str, ReputationRecord] = {}
        for ip, record in fetched.items():
            if ip in chunk:
                results[ip] = await self._store(record)
        # Leftovers are counted by lookup() below
        self._stats.misses += len(results)

        leftovers = [ip for ip in chunk if ip not in results]
        if leftovers:
            records = await asyncio.gather(*(self.lookup(ip) for ip in leftovers))
            results.update(zip(leftovers, records, strict=True))
        return results

    async def _fetch_and_store(self, ip: str) -> ReputationRecord:
        self._stats.provider_calls += 1
        timeout = self._settings.lookup_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                record = await self._provider.check_ip(ip, timeout=timeout)
        except TimeoutError:
            return self._fallback(ip, f"Reputation lookup timed out after {timeout}s")
        except ReputationProviderError as exc:
            return self._fallback(ip, str(exc))
        except Exception as exc:
            logger.warning("reputation_provider_unexpected_error", ip=ip, exc_info=True)
            return self._fallback(ip, str(exc) or exc.__class__.__name__)

        return await self._store(record)

    def _fallback(self, ip: str, error: str) -> ReputationRecord:
        self._stats.fallbacks += 1
        logger.warning("reputation_lookup_fallback", ip=ip, error=error)
        return fallback_record(ip, error)

    async def _store(self, record: ReputationRecord) -> ReputationRecord:
        async with self._write_lock:
            now = self._clock()
            cached_at = datetime.fromtimestamp(now, UTC)
            stamped = record.model_copy(
                update={
                    "cached_at": cached_at,
                    "ttl_expiry": cached_at + timedelta(seconds=self._settings.cache_ttl_seconds),
                }
            )
            if record.ip not in self._entries and len(self._entries) >= self.capacity:
                self._evict_oldest()
            self._entries[record.ip] = _Entry(record=stamped, cached_at=now)
            return stamped

    def _evict_oldest(self) -> None:
        """Drop the oldest fraction of entries by cached_at. Caller holds the lock."""
        count = max(1, math.ceil(len(self._entries) * self._settings.eviction_fraction))
        oldest = sorted(self._entries.items(), key=lambda item: item[1].cached_at)[:count]
        for ip, _ in oldest:
            del self._entries[ip]
        self._stats.evictions += len(oldest)
        logger.info("reputation_cache_evicted", evicted=len(oldest), remaining=len(self._entries))

    async def invalidate(self, ip: str) -> bool:
        async with self._write_lock:
            return self._entries.pop(ip, None) is not None

    async def clear(self) -> None:
        async with self._write_lock:
            self._entries.clear()
        logger.info("reputation_cache_cleared")

    async def test_connection(self, probe_ip: str = "8.8.8.8") -> bool:
        """Check the provider is reachable, bypassing the cache."""
        timeout = self._settings.lookup_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                await self._provider.check_ip(probe_ip, timeout=timeout)
        except (ReputationProviderError, TimeoutError) as exc:
            logger.warning("reputation_connection_test_failed", error=str(exc))
            return False
        return True

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl_seconds": self._settings.cache_ttl_seconds,
            **asdict(self._stats),
        }
