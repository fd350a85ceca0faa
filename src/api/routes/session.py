"""Session bootstrap and event tracking endpoints used by the browser SDK."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Request

from src.api.dependencies import client_ip, get_history_store
from src.domains.risk.history import HistoryStore
from src.domains.risk.models import SessionInitRequest, TrackEventRequest

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["session"])


@router.post("/session/initialize")
async def initialize_session(
    payload: SessionInitRequest,
    request: Request,
    history: HistoryStore = Depends(get_history_store),  # noqa: B008
) -> dict:
    await history.create_session(
        session_id=payload.session_id,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
        referrer=payload.referrer or request.headers.get("referer"),
        initial_url=payload.url,
    )
    logger.info("session_initialized", session_id=payload.session_id)
    return {"session_id": payload.session_id, "timestamp": datetime.now(UTC).isoformat()}


@router.post("/events/track")
async def track_event(
    payload: TrackEventRequest,
    request: Request,
    history: HistoryStore = Depends(get_history_store),  # noqa: B008
) -> dict:
    await history.track_event(
        session_id=payload.session_id,
        event_type=payload.type,
        event_data=payload.data,
        url=payload.url or request.headers.get("referer"),
    )
    return {"status": "tracked", "timestamp": datetime.now(UTC).isoformat()}
