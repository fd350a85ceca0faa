"""FastAPI dependencies resolving the per-app engine and History Store."""

from fastapi import Request

from src.domains.risk.engine import RiskScoringEngine
from src.domains.risk.history import HistoryStore


def get_engine(request: Request) -> RiskScoringEngine:
    return request.app.state.risk_engine


def get_history_store(request: Request) -> HistoryStore:
    return request.app.state.history_store


def client_ip(request: Request) -> str:
    """Best guess at the caller's address, proxies first."""
    forwarded = request.headers.get("x-forwarded-for")
    ip = (
        (forwarded.split(",")[0].strip() if forwarded else None)
        or request.headers.get("x-real-ip")
        or (request.client.host if request.client else None)
        or "127.0.0.1"
    )
    return ip.removeprefix("::ffff:")
