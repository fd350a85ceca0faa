"""Health and readiness endpoints."""

from fastapi import APIRouter, Request

from src.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    from src.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
    }


@router.get("/health/detailed")
async def health_detailed(request: Request) -> dict:
    from src.db.database import check_db
    from src.main import get_uptime

    components: dict = {}

    db_engine = getattr(request.app.state, "db_engine", None)
    db_ok = await check_db(db_engine)
    components["database"] = {"status": "healthy" if db_ok else "unhealthy"}

    risk_engine = getattr(request.app.state, "risk_engine", None)
    if risk_engine is None:
        components["reputation"] = {"status": "unhealthy", "details": "Engine not initialized"}
    else:
        provider = risk_engine.cache.provider
        has_key = bool(getattr(provider, "has_api_key", False))
        components["reputation"] = {
            "status": "healthy" if has_key else "degraded",
            "details": "API key configured" if has_key else "No API key configured",
            "cache": risk_engine.cache.stats(),
        }

    statuses = [c["status"] for c in components.values()]
    if "unhealthy" in statuses:
        status = "unhealthy"
    elif "degraded" in statuses:
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
        "components": components,
    }
