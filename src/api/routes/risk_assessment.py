"""Risk assessment endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import client_ip, get_engine, get_history_store
from src.domains.risk.engine import RiskScoringEngine
from src.domains.risk.errors import PersistenceError
from src.domains.risk.history import HistoryStore
from src.domains.risk.models import AssessmentRequest

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/risk-assessment", tags=["risk-assessment"])


@router.post("")
async def assess_risk(
    payload: AssessmentRequest,
    request: Request,
    engine: RiskScoringEngine = Depends(get_engine),  # noqa: B008
    history: HistoryStore = Depends(get_history_store),  # noqa: B008
) -> dict:
    updates: dict = {}
    if payload.ip_address is None:
        updates["ip_address"] = client_ip(request)
    if payload.user_agent is None:
        updates["user_agent"] = request.headers.get("user-agent")
    if updates:
        payload = payload.model_copy(update=updates)

    assessment = await engine.assess_risk(payload)

    try:
        await history.create_session(
            session_id=payload.session_id,
            user_agent=payload.user_agent,
            ip_address=payload.ip_address,
            referrer=request.headers.get("referer"),
            initial_url=payload.behavioral_info.current_url if payload.behavioral_info else None,
        )
        fingerprint = payload.fingerprint
        if fingerprint is not None and fingerprint.visitor_id:
            device = payload.device_info
            await history.store_device_fingerprint(
                fingerprint_id=fingerprint.visitor_id,
                session_id=payload.session_id,
                confidence=fingerprint.confidence,
                components=fingerprint.components,
                user_agent=payload.user_agent,
                screen_resolution=device.screen_resolution if device else None,
                timezone=device.timezone if device else None,
                language=device.language if device else None,
                platform=device.platform if device else None,
            )
    except PersistenceError:
        logger.warning("session_bookkeeping_failed", session_id=payload.session_id, exc_info=True)

    return assessment.model_dump(mode="json")


@router.get("/history/{session_id}")
async def assessment_history(
    session_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    history: HistoryStore = Depends(get_history_store),  # noqa: B008
) -> dict:
    records = await history.get_access_history(session_id, limit)
    return {
        "session_id": session_id,
        "history": [r.model_dump(mode="json") for r in records],
        "count": len(records),
    }


@router.get("/stats")
async def assessment_stats(
    engine: RiskScoringEngine = Depends(get_engine),  # noqa: B008
    history: HistoryStore = Depends(get_history_store),  # noqa: B008
) -> dict:
    return {
        "storage": await history.get_statistics(),
        "reputation_cache": engine.cache.stats(),
        "weights": {f.value: w for f, w in engine.aggregator.weights.items()},
        "computed_at": datetime.now(UTC).isoformat(),
    }
