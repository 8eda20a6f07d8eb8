"""
Health check and monitoring endpoints.
"""
import time
import logging
from fastapi import APIRouter
from app.db import check_database_health
from app.core.settings import settings
from app.services.push_transport import get_push_transport
from app.utils.datetime import utc_now

logger = logging.getLogger("app.health")
router = APIRouter()

SERVICE_NAME = "notification-service"
_started_at = time.monotonic()


@router.get("/health")
async def health_check():
    """Basic liveness payload."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": utc_now().isoformat() + "Z",
        "uptime": round(time.monotonic() - _started_at, 3),
    }

@router.get("/health/detailed")
async def detailed_health_check():
    """Detailed health check with dependency status."""
    start_time = time.time()

    health_status = {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": utc_now().isoformat() + "Z",
        "environment": settings.environment,
        "services": {}
    }

    # Check database
    try:
        db_health = await check_database_health()
        health_status["services"]["database"] = db_health
        if db_health["status"] != "healthy":
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["services"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        health_status["status"] = "degraded"

    # Push transport
    if get_push_transport().available():
        health_status["services"]["push"] = {"status": "configured", "provider": "fcm"}
    else:
        health_status["services"]["push"] = {"status": "not_configured", "note": "Push sends will fail"}
        health_status["status"] = "degraded"

    health_status["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
    return health_status

@router.get("/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    try:
        db_health = await check_database_health()
        if db_health["status"] != "healthy":
            return {"status": "not_ready", "reason": "database_unavailable"}
        return {"status": "ready"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return {"status": "not_ready", "reason": str(e)}

@router.get("/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"status": "alive", "timestamp": time.time()}
