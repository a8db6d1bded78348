# FILE: messboard/routes/metrics.py
"""
Lifecycle metrics over in-memory telemetry
"""
import logging
from fastapi import APIRouter, Request

from messboard.services.telemetry import get_telemetry_summary

logger = logging.getLogger(__name__)
router = APIRouter(tags=["metrics"])


@router.get("/summary")
async def metrics_summary(request: Request):
    """Telemetry counters plus sweeper and hub stats"""
    state = request.app.state
    summary = get_telemetry_summary()
    summary["sweeper"] = {
        "runs": state.sweeper.runs,
        "failures": state.sweeper.failures,
        "running": state.sweeper.running,
    }
    summary["hub"] = {
        "subscribers": state.hub.subscriber_count,
        "published": state.hub.published,
    }
    return summary
