# FILE: messboard/routes/health.py
"""
Health check endpoint
"""
import logging
from fastapi import APIRouter, Request

from messboard import __version__

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check(request: Request):
    """
    Health check endpoint
    Returns store=ok when the record store answers a ping
    """
    state = request.app.state

    store_ok = await state.engine.store.ping()
    if not store_ok:
        logger.warning("Health check: record store unavailable")

    return {
        "status": "healthy" if store_ok else "degraded",
        "version": __version__,
        "store": "ok" if store_ok else "unavailable",
        "storeBackend": state.settings.store_backend,
        "ttlHours": state.engine.ttl_ms / 3_600_000,
        "sweepIntervalSeconds": state.sweeper.interval_seconds,
        "sweeperRunning": state.sweeper.running,
        "subscribers": state.hub.subscriber_count
    }
