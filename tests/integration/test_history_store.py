"""Integration tests for the SQLAlchemy History Store against in-memory SQLite."""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.db.database import check_db, init_db
from src.db.history_store import SqlHistoryStore
from src.domains.risk.engine import RiskScoringEngine
from src.domains.risk.errors import HistoryLookupError, PersistenceError
from src.domains.risk.models import LocationRecord
from src.domains.risk.reputation_cache import ReputationCache
from tests.conftest import NOW, FakeReputationProvider, make_request

pytestmark = pytest.mark.integration


def _sqlite_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest_asyncio.fixture
async def db_engine():
    engine = _sqlite_engine()
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(db_engine) -> SqlHistoryStore:
    return SqlHistoryStore(async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False))


def _location(minutes_ago: int, country: str = "France") -> LocationRecord:
    return LocationRecord(
        session_id="sess-1",
        ip_address="198.51.100.1",
        country=country,
        latitude=48.85,
        longitude=2.35,
        recorded_at=NOW - timedelta(minutes=minutes_ago),
    )


class TestSqlHistoryStore:
    @pytest.mark.asyncio
    async def test_check_db(self, db_engine):
        assert await check_db(db_engine)

    @pytest.mark.asyncio
    async def test_assessments_round_trip_newest_first(self, store):
        engine = RiskScoringEngine(ReputationCache(FakeReputationProvider()), store)
        await engine.assess_risk(make_request(event="login", timestamp=NOW - timedelta(hours=1)))
        await engine.assess_risk(make_request(event="checkout", timestamp=NOW))

        history = await store.get_access_history("sess-1")

        assert [h.event for h in history] == ["checkout", "login"]
        assert history[0].timestamp == NOW
        assert history[0].level in ("LOW", "MEDIUM", "HIGH")

    @pytest.mark.asyncio
    async def test_engine_records_location(self, store):
        engine = RiskScoringEngine(ReputationCache(FakeReputationProvider()), store)
        await engine.assess_risk(make_request())

        [location] = await store.get_location_history("sess-1")

        assert location.country == "United States"
        assert location.latitude == pytest.approx(40.7128)
        assert location.recorded_at == NOW

    @pytest.mark.asyncio
    async def test_location_history_limit_and_order(self, store):
        for minutes in (30, 10, 20):
            await store.record_location(_location(minutes))

        history = await store.get_location_history("sess-1", limit=2)

        assert [h.recorded_at for h in history] == [
            NOW - timedelta(minutes=10),
            NOW - timedelta(minutes=20),
        ]

    @pytest.mark.asyncio
    async def test_behavior_history(self, store):
        await store.track_event("sess-1", "click", {"x": 1}, "/cart", timestamp=NOW - timedelta(seconds=5))
        await store.track_event("sess-1", "scroll", timestamp=NOW)
        await store.track_event("sess-2", "click", timestamp=NOW)

        events = await store.get_behavior_history("sess-1")

        assert [e.event_type for e in events] == ["scroll", "click"]
        assert events[1].event_data == {"x": 1}
        assert events[1].url == "/cart"

    @pytest.mark.asyncio
    async def test_device_upsert_counts_sightings(self, store):
        assert await store.find_device_by_fingerprint("fp-1") is None

        await store.store_device_fingerprint("fp-1", "sess-1", confidence=0.9, components={"canvas": "abc"})
        await store.store_device_fingerprint("fp-1", "sess-2", confidence=0.9)

        device = await store.find_device_by_fingerprint("fp-1")
        assert device.seen_count == 2
        assert device.session_id == "sess-1"
        assert device.first_seen.tzinfo is not None

    @pytest.mark.asyncio
    async def test_create_session_is_idempotent(self, store):
        await store.create_session("sess-1", user_agent="ua-1")
        await store.create_session("sess-1", user_agent="ua-2")

        stats = await store.get_statistics()
        assert stats["sessions"] == 1

    @pytest.mark.asyncio
    async def test_statistics(self, store):
        engine = RiskScoringEngine(ReputationCache(FakeReputationProvider()), store)
        await engine.assess_risk(make_request())
        await store.track_event("sess-1", "click")

        stats = await store.get_statistics()

        assert stats["risk_assessments"] == 1
        assert stats["events"] == 1
        assert stats["location_history"] == 1
        assert sum(stats["assessments_by_level"].values()) == 1


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self):
        engine = _sqlite_engine()
        store = SqlHistoryStore(async_sessionmaker(engine, class_=AsyncSession))
        try:
            with pytest.raises(HistoryLookupError):
                await store.get_location_history("sess-1")
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_write_failure_wrapped(self):
        engine = _sqlite_engine()
        store = SqlHistoryStore(async_sessionmaker(engine, class_=AsyncSession))
        try:
            with pytest.raises(PersistenceError):
                await store.record_location(_location(1))
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_engine_survives_missing_tables(self):
        engine = _sqlite_engine()
        store = SqlHistoryStore(async_sessionmaker(engine, class_=AsyncSession))
        risk_engine = RiskScoringEngine(ReputationCache(FakeReputationProvider()), store)
        try:
            assessment = await risk_engine.assess_risk(
                make_request(fingerprint={"visitor_id": "fp-1", "confidence": 0.9})
            )
        finally:
            await engine.dispose()

        # Reads fail as "no history": new device, no degraded scores
        assert assessment.device_fingerprint.score == 15
        assert not any(
            s.degraded
            for s in (assessment.device_fingerprint, assessment.behavioral, assessment.temporal)
        )
