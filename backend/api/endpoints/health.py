"""
Health and status endpoints
"""

import time

from fastapi import APIRouter

from core.config import settings
from services.aggregator import utc_timestamp

router = APIRouter()

_started_at = time.monotonic()


@router.get("/health")
async def health_check():
    """Service health, including whether the inference credential is present"""
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "timestamp": utc_timestamp(),
        "environment": settings.ENVIRONMENT,
        "api_key_configured": settings.api_key_configured,
        "uptime": round(time.monotonic() - _started_at, 3)
    }


@router.get("/status")
async def service_status():
    """List the available endpoints"""
    return {
        "status": "running",
        "message": f"{settings.PROJECT_NAME} API is operational",
        "endpoints": {
            "analyze": "/api/analyze (POST)",
            "health": "/api/health (GET)",
            "status": "/api/status (GET)"
        }
    }
