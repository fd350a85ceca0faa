"""Unit tests for the TTL/capacity-bounded reputation cache."""

import asyncio

import pytest

from src.domains.risk.config import ReputationSettings
from src.domains.risk.errors import ReputationProviderError
from src.domains.risk.reputation_cache import ReputationCache, fallback_record, is_local_address
from tests.conftest import FakeReputationProvider, clean_record


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _cache(provider, clock=None, **settings) -> ReputationCache:
    return ReputationCache(provider, ReputationSettings(**settings), clock=clock or FakeClock())


class TestLocalAddresses:
    @pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "localhost", "::ffff:127.0.0.1", "0.0.0.0"])
    def test_loopback_detected(self, ip):
        assert is_local_address(ip)

    @pytest.mark.parametrize("ip", ["8.8.8.8", "203.0.113.10", "", None, "garbage"])
    def test_non_local(self, ip):
        assert not is_local_address(ip)

    def test_localhost_fallback_is_not_malicious(self):
        record = fallback_record("127.0.0.1", "boom")
        assert record.risk == "localhost"
        assert record.country == "LOCAL"
        assert record.proxy == "no"
        assert record.fallback

    def test_unknown_fallback_marks_everything_unknown(self):
        record = fallback_record("203.0.113.10", "boom")
        assert record.risk == "unknown"
        assert record.proxy == "unknown"
        assert record.vpn == "unknown"
        assert record.fallback
        assert record.error == "boom"


class TestLookup:
    @pytest.mark.asyncio
    async def test_hit_within_ttl_skips_provider(self):
        provider = FakeReputationProvider()
        cache = _cache(provider)

        first = await cache.lookup("203.0.113.10")
        second = await cache.lookup("203.0.113.10")

        assert provider.calls == ["203.0.113.10"]
        assert first == second
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    @pytest.mark.asyncio
    async def test_entry_is_stamped(self):
        cache = _cache(FakeReputationProvider(), cache_ttl_seconds=60)
        record = await cache.lookup("203.0.113.10")
        assert record.cached_at is not None
        assert (record.ttl_expiry - record.cached_at).total_seconds() == 60

    @pytest.mark.asyncio
    async def test_refresh_after_ttl(self):
        provider = FakeReputationProvider()
        clock = FakeClock()
        cache = _cache(provider, clock=clock, cache_ttl_seconds=3600)

        await cache.lookup("203.0.113.10")
        clock.advance(3600)
        await cache.lookup("203.0.113.10")
        assert len(provider.calls) == 1

        clock.advance(1)
        await cache.lookup("203.0.113.10")
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_returns_fallback_and_is_not_cached(self):
        provider = FakeReputationProvider(delay=0.5)
        cache = _cache(provider, lookup_timeout_seconds=0.01)

        record = await cache.lookup("203.0.113.10")

        assert record.fallback
        assert record.risk == "unknown"
        assert "timed out" in record.error
        assert "203.0.113.10" not in cache
        assert cache.stats()["fallbacks"] == 1

    @pytest.mark.asyncio
    async def test_provider_error_returns_fallback(self):
        provider = FakeReputationProvider(error=ReputationProviderError("HTTP 503"))
        cache = _cache(provider)

        record = await cache.lookup("203.0.113.10")

        assert record.fallback
        assert record.error == "HTTP 503"
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_fallback(self):
        provider = FakeReputationProvider(error=KeyError("country"))
        cache = _cache(provider)

        record = await cache.lookup("203.0.113.10")

        assert record.fallback

    @pytest.mark.asyncio
    async def test_loopback_failure_yields_localhost_fallback(self):
        provider = FakeReputationProvider(error=ReputationProviderError("refused"))
        cache = _cache(provider)

        record = await cache.lookup("127.0.0.1")

        assert record.risk == "localhost"
        assert record.fallback

    @pytest.mark.asyncio
    async def test_concurrent_lookups_share_one_provider_call(self):
        provider = FakeReputationProvider(delay=0.05)
        cache = _cache(provider)

        records = await asyncio.gather(*(cache.lookup("203.0.113.10") for _ in range(10)))

        assert provider.calls == ["203.0.113.10"]
        assert all(r == records[0] for r in records)

    @pytest.mark.asyncio
    async def test_failed_lookup_is_retried_by_next_request(self):
        provider = FakeReputationProvider(error=ReputationProviderError("down"))
        cache = _cache(provider)

        await cache.lookup("203.0.113.10")
        provider.error = None
        record = await cache.lookup("203.0.113.10")

        assert not record.fallback
        assert len(provider.calls) == 2


class TestEviction:
    @pytest.mark.asyncio
    async def test_oldest_entries_evicted_at_capacity(self):
        provider = FakeReputationProvider()
        clock = FakeClock()
        cache = _cache(provider, clock=clock, cache_capacity=10)

        for i in range(10):
            await cache.lookup(f"203.0.113.{i}")
            clock.advance(1)
        assert len(cache) == 10

        await cache.lookup("198.51.100.1")

        assert len(cache) == 10
        assert "203.0.113.0" not in cache
        assert "203.0.113.1" in cache
        assert "198.51.100.1" in cache
        assert cache.stats()["evictions"] == 1

    @pytest.mark.asyncio
    async def test_evicts_ten_percent(self):
        clock = FakeClock()
        cache = _cache(FakeReputationProvider(), clock=clock, cache_capacity=50)

        for i in range(50):
            await cache.lookup(f"203.0.113.{i}")
            clock.advance(1)
        await cache.lookup("198.51.100.1")

        assert len(cache) == 46
        assert all(f"203.0.113.{i}" not in cache for i in range(5))
        assert "203.0.113.5" in cache

    @pytest.mark.asyncio
    async def test_size_never_exceeds_capacity(self):
        cache = _cache(FakeReputationProvider(), cache_capacity=5)
        for i in range(40):
            await cache.lookup(f"203.0.113.{i}")
            assert len(cache) <= 5

    @pytest.mark.asyncio
    async def test_refreshing_existing_key_does_not_evict(self):
        clock = FakeClock()
        cache = _cache(FakeReputationProvider(), clock=clock, cache_capacity=3, cache_ttl_seconds=10)
        for i in range(3):
            await cache.lookup(f"203.0.113.{i}")
        clock.advance(11)

        await cache.lookup("203.0.113.0")

        assert cache.stats()["evictions"] == 0
        assert len(cache) == 3


class TestLookupMany:
    @pytest.mark.asyncio
    async def test_batches_only_uncached_ips(self):
        provider = FakeReputationProvider()
        cache = _cache(provider)
        await cache.lookup("203.0.113.1")

        results = await cache.lookup_many(["203.0.113.1", "203.0.113.2", "203.0.113.3"])

        assert list(results) == ["203.0.113.1", "203.0.113.2", "203.0.113.3"]
        assert provider.batch_calls == [["203.0.113.2", "203.0.113.3"]]
        assert "203.0.113.3" in cache

    @pytest.mark.asyncio
    async def test_chunks_by_batch_size(self):
        provider = FakeReputationProvider()
        cache = _cache(provider, batch_size=2)

        await cache.lookup_many([f"203.0.113.{i}" for i in range(5)])

        assert [len(chunk) for chunk in provider.batch_calls] == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_batch_failure_falls_back_to_single_lookups(self):
        provider = FakeReputationProvider(batch_error=ReputationProviderError("HTTP 500"))
        cache = _cache(provider)

        results = await cache.lookup_many(["203.0.113.1", "203.0.113.2"])

        assert sorted(provider.calls) == ["203.0.113.1", "203.0.113.2"]
        assert not any(r.fallback for r in results.values())

    @pytest.mark.asyncio
    async def test_ips_missing_from_batch_reply_are_looked_up_singly(self):
        provider = FakeReputationProvider(omit_from_batch={"203.0.113.2"})
        cache = _cache(provider)

        results = await cache.lookup_many(["203.0.113.1", "203.0.113.2"])

        assert provider.calls == ["203.0.113.2"]
        assert set(results) == {"203.0.113.1", "203.0.113.2"}

    @pytest.mark.asyncio
    async def test_batch_misses_counted_once_per_ip(self):
        cache = _cache(FakeReputationProvider())

        await cache.lookup_many(["203.0.113.1", "203.0.113.2"])

        stats = cache.stats()
        assert stats["misses"] == 2
        assert stats["batch_calls"] == 1

    @pytest.mark.asyncio
    async def test_failed_batch_misses_counted_once_per_ip(self):
        provider = FakeReputationProvider(batch_error=ReputationProviderError("HTTP 500"))
        cache = _cache(provider)

        await cache.lookup_many(["203.0.113.1", "203.0.113.2"])

        assert cache.stats()["misses"] == 2

    @pytest.mark.asyncio
    async def test_partial_batch_reply_misses_counted_once_per_ip(self):
        provider = FakeReputationProvider(omit_from_batch={"203.0.113.2"})
        cache = _cache(provider)

        await cache.lookup_many(["203.0.113.1", "203.0.113.2", "203.0.113.3"])

        assert cache.stats()["misses"] == 3

    @pytest.mark.asyncio
    async def test_duplicates_and_blanks_ignored(self):
        provider = FakeReputationProvider()
        cache = _cache(provider)

        results = await cache.lookup_many(["203.0.113.1", "", "203.0.113.1"])

        assert list(results) == ["203.0.113.1"]
        assert provider.batch_calls == [["203.0.113.1"]]


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self):
        provider = FakeReputationProvider(records={"203.0.113.1": clean_record("203.0.113.1")})
        cache = _cache(provider)
        await cache.lookup("203.0.113.1")
        await cache.lookup("203.0.113.2")

        assert await cache.invalidate("203.0.113.1")
        assert not await cache.invalidate("203.0.113.1")
        assert len(cache) == 1

        await cache.clear()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_connection_probe_bypasses_cache(self):
        provider = FakeReputationProvider()
        cache = _cache(provider)

        assert await cache.test_connection()
        assert provider.calls == ["8.8.8.8"]
        assert len(cache) == 0

        provider.error = ReputationProviderError("down")
        assert not await cache.test_connection()

    def test_stats_shape(self):
        cache = _cache(FakeReputationProvider(), cache_capacity=7, cache_ttl_seconds=60)
        stats = cache.stats()
        assert stats["size"] == 0
        assert stats["capacity"] == 7
        assert stats["ttl_seconds"] == 60
        assert stats["provider_calls"] == 0
