"""SQLAlchemy implementation of the History Store.

Read failures surface as HistoryLookupError and write failures as
PersistenceError; both wrap the underlying SQLAlchemyError.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import DeviceFingerprintRow, EventRow, LocationRow, RiskAssessmentRow, SessionRow
from src.domains.risk.errors import HistoryLookupError, PersistenceError
from src.domains.risk.models import (
    AccessRecord,
    BehaviorEvent,
    DeviceRecord,
    LocationRecord,
    RiskAssessment,
)

logger = structlog.get_logger()


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SqlHistoryStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _reading(self, what: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.warning("history_read_failed", history=what, error=str(exc))
            raise HistoryLookupError(f"Failed to read {what} history") from exc

    @asynccontextmanager
    async def _writing(self, what: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("history_write_failed", record=what, error=str(exc))
            raise PersistenceError(f"Failed to store {what}") from exc

    # -- reads ---------------------------------------------------------------

    async def find_device_by_fingerprint(self, fingerprint_id: str) -> DeviceRecord | None:
        async with self._reading("device") as session:
            stmt = select(DeviceFingerprintRow).where(
                DeviceFingerprintRow.fingerprint_id == fingerprint_id
            )
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return DeviceRecord(
            fingerprint_id=row.fingerprint_id,
            session_id=row.session_id,
            confidence=row.confidence,
            first_seen=_as_utc(row.first_seen),
            last_seen=_as_utc(row.last_seen),
            seen_count=row.seen_count,
        )

    async def get_behavior_history(self, session_id: str, limit: int = 100) -> list[BehaviorEvent]:
        async with self._reading("behavior") as session:
            stmt = (
                select(EventRow)
                .where(EventRow.session_id == session_id)
                .order_by(EventRow.timestamp.desc(), EventRow.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [
            BehaviorEvent(
                session_id=r.session_id,
                event_type=r.event_type,
                event_data=r.event_data or {},
                url=r.url,
                timestamp=_as_utc(r.timestamp),
            )
            for r in rows
        ]

    async def get_location_history(self, session_id: str, limit: int = 10) -> list[LocationRecord]:
        async with self._reading("location") as session:
            stmt = (
                select(LocationRow)
                .where(LocationRow.session_id == session_id)
                .order_by(LocationRow.recorded_at.desc(), LocationRow.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [
            LocationRecord(
                session_id=r.session_id,
                ip_address=r.ip_address,
                country=r.country or "unknown",
                region=r.region or "unknown",
                city=r.city or "unknown",
                latitude=r.latitude,
                longitude=r.longitude,
                timezone=r.timezone,
                recorded_at=_as_utc(r.recorded_at),
            )
            for r in rows
        ]

    async def get_access_history(self, session_id: str, limit: int = 50) -> list[AccessRecord]:
        async with self._reading("access") as session:
            stmt = (
                select(RiskAssessmentRow)
                .where(RiskAssessmentRow.session_id == session_id)
                .order_by(RiskAssessmentRow.assessed_at.desc(), RiskAssessmentRow.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [
            AccessRecord(
                timestamp=_as_utc(r.assessed_at),
                event=r.event_type,
                score=r.risk_score,
                level=r.risk_level,
            )
            for r in rows
        ]

    async def get_statistics(self) -> dict:
        tables = {
            "sessions": SessionRow,
            "risk_assessments": RiskAssessmentRow,
            "device_fingerprints": DeviceFingerprintRow,
            "events": EventRow,
            "location_history": LocationRow,
        }
        stats: dict = {}
        async with self._reading("statistics") as session:
            for name, model in tables.items():
                result = await session.execute(select(func.count()).select_from(model))
                stats[name] = result.scalar_one()

            level_stmt = select(RiskAssessmentRow.risk_level, func.count()).group_by(
                RiskAssessmentRow.risk_level
            )
            stats["assessments_by_level"] = {
                level: count for level, count in (await session.execute(level_stmt)).all()
            }
        return stats

    # -- writes --------------------------------------------------------------

    async def store_risk_assessment(self, assessment: RiskAssessment) -> None:
        async with self._writing("risk assessment") as session:
            session.add(
                RiskAssessmentRow(
                    session_id=assessment.session_id,
                    event_type=assessment.event,
                    risk_score=assessment.overall_score,
                    risk_level=assessment.risk_level.value,
                    recommended_action=assessment.recommended_action.value,
                    ip_reputation_score=assessment.ip_reputation.score,
                    device_fingerprint_score=assessment.device_fingerprint.score,
                    behavioral_score=assessment.behavioral.score,
                    geolocation_score=assessment.geolocation.score,
                    temporal_score=assessment.temporal.score,
                    reasons=list(assessment.reasons),
                    details=assessment.model_dump(
                        mode="json",
                        include={"ip_reputation", "device_fingerprint", "behavioral", "geolocation", "temporal"},
                    ),
                    processing_time_ms=assessment.processing_time_ms,
                    model_version=assessment.model_version,
                    assessed_at=assessment.timestamp,
                )
            )
        logger.debug("risk_assessment_stored", session_id=assessment.session_id)

    async def record_location(self, record: LocationRecord) -> None:
        async with self._writing("location") as session:
            session.add(
                LocationRow(
                    session_id=record.session_id,
                    ip_address=record.ip_address,
                    country=record.country,
                    region=record.region,
                    city=record.city,
                    latitude=record.latitude,
                    longitude=record.longitude,
                    timezone=record.timezone,
                    recorded_at=record.recorded_at,
                )
            )

    async def create_session(
        self,
        session_id: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
        referrer: str | None = None,
        initial_url: str | None = None,
    ) -> str:
        async with self._writing("session") as session:
            stmt = select(SessionRow).where(SessionRow.session_id == session_id)
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                session.add(
                    SessionRow(
                        session_id=session_id,
                        user_agent=user_agent,
                        ip_address=ip_address,
                        referrer=referrer,
                        initial_url=initial_url,
                    )
                )
            else:
                row.user_agent = user_agent
                row.ip_address = ip_address
                row.referrer = referrer
                row.initial_url = initial_url
                row.updated_at = datetime.now(UTC)
        logger.debug("session_created", session_id=session_id)
        return session_id

    async def track_event(
        self,
        session_id: str,
        event_type: str,
        event_data: dict | None = None,
        url: str | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        async with self._writing("event") as session:
            session.add(
                EventRow(
                    session_id=session_id,
                    event_type=event_type,
                    event_data=event_data or {},
                    url=url,
                    timestamp=timestamp or datetime.now(UTC),
                )
            )
        logger.debug("event_tracked", session_id=session_id, event_type=event_type)

    async def store_device_fingerprint(
        self,
        fingerprint_id: str,
        session_id: str,
        confidence: float | None = None,
        components: dict | None = None,
        user_agent: str | None = None,
        screen_resolution: str | None = None,
        timezone: str | None = None,
        language: str | None = None,
        platform: str | None = None,
    ) -> None:
        now = datetime.now(UTC)
        async with self._writing("device fingerprint") as session:
            stmt = select(DeviceFingerprintRow).where(
                DeviceFingerprintRow.fingerprint_id == fingerprint_id
            )
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                session.add(
                    DeviceFingerprintRow(
                        fingerprint_id=fingerprint_id,
                        session_id=session_id,
                        confidence=confidence,
                        components=components or {},
                        user_agent=user_agent,
                        screen_resolution=screen_resolution,
                        timezone=timezone,
                        language=language,
                        platform=platform,
                        first_seen=now,
                        last_seen=now,
                        seen_count=1,
                    )
                )
            else:
                row.last_seen = now
                row.seen_count = row.seen_count + 1
        logger.debug("device_fingerprint_stored", fingerprint_id=fingerprint_id)
