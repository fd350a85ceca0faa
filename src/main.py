"""FastAPI application entry point for Sentinel Risk."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import global_exception_handler, validation_exception_handler
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.health import router as health_router
from src.api.routes.risk_assessment import router as risk_assessment_router
from src.api.routes.session import router as session_router
from src.config import settings
from src.domains.risk.errors import RiskEngineError
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level, json_logs=not settings.debug)

    logger.info(
        "sentinel_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from src.db.database import async_session_factory, engine, init_db
    from src.db.history_store import SqlHistoryStore
    from src.domains.risk.config import RiskConfig
    from src.domains.risk.engine import RiskScoringEngine
    from src.domains.risk.provider import ProxyCheckClient
    from src.domains.risk.reputation_cache import ReputationCache

    await init_db()

    risk_config = RiskConfig.from_env()
    provider = ProxyCheckClient(
        base_url=settings.reputation_base_url,
        api_key=settings.reputation_api_key,
        user_agent=settings.reputation_user_agent,
        timeout=settings.reputation_timeout_seconds,
    )
    if not provider.has_api_key:
        logger.warning("reputation_api_key_missing")

    cache = ReputationCache(provider, risk_config.reputation)
    history = SqlHistoryStore(async_session_factory)

    app.state.db_engine = engine
    app.state.history_store = history
    app.state.risk_engine = RiskScoringEngine(cache, history, risk_config)

    yield

    await provider.aclose()
    logger.info("sentinel_shutting_down")


app = FastAPI(
    title="Sentinel Risk",
    description="Real-time fraud risk scoring for web sessions",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValueError, global_exception_handler)
app.add_exception_handler(RiskEngineError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(risk_assessment_router)
app.include_router(session_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
