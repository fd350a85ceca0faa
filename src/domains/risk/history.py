"""History Store interface consumed by the analyzers and the engine.

Reads return most-recent-first. Implementations may raise HistoryLookupError
or PersistenceError; callers decide how much of that to tolerate.
"""

from datetime import datetime
from typing import Protocol

from .models import (
    AccessRecord,
    BehaviorEvent,
    DeviceRecord,
    LocationRecord,
    RiskAssessment,
)


class HistoryStore(Protocol):
    async def find_device_by_fingerprint(self, fingerprint_id: str) -> DeviceRecord | None: ...

    async def get_behavior_history(self, session_id: str, limit: int = 100) -> list[BehaviorEvent]: ...

    async def get_location_history(self, session_id: str, limit: int = 10) -> list[LocationRecord]: ...

    async def get_access_history(self, session_id: str, limit: int = 50) -> list[AccessRecord]: ...

    async def store_risk_assessment(self, assessment: RiskAssessment) -> None: ...

    async def record_location(self, record: LocationRecord) -> None: ...

    async def create_session(
        self,
        session_id: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
        referrer: str | None = None,
        initial_url: str | None = None,
    ) -> str: ...

    async def track_event(
        self,
        session_id: str,
        event_type: str,
        event_data: dict | None = None,
        url: str | None = None,
        timestamp: datetime | None = None,
    ) -> None: ...

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
    ) -> None: ...

    async def get_statistics(self) -> dict: ...
