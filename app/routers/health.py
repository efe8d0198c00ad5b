"""
Health check endpoint.

- GET /api/health  process alive, version, uptime, analysis mode and cache size
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.core.structured_logging import APP_VERSION, SERVICE_NAME, get_uptime_s
from app.routers.feedback import get_analysis_service
from app.services.analysis_service import AnalysisService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(analysis: AnalysisService = Depends(get_analysis_service)):
    """Cheap health check, no network calls. ``degraded`` after demotion."""
    status = analysis.status()
    return {
        "status": "degraded" if status["demotion_reason"] else "ok",
        "version": APP_VERSION,
        "service": SERVICE_NAME,
        "uptime_s": round(get_uptime_s(), 1),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "analysis": {"mode": status["mode"], "cache_entries": status["cache_entries"]},
    }
