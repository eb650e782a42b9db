"""
Health check endpoints
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from jobtrail.core.config import get_settings
from jobtrail.core.database import get_db
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import success_response
from jobtrail.services.api_monitoring_service import (SERVICE_QUOTAS,
                                                      get_rate_limit_tracker)
from jobtrail.utils.datetime_utils import utc_now_iso

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check():
    """
    Basic liveness check

    Returns:
        dict: Health status
    """
    settings = get_settings()
    return success_response({
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "service": settings.app_name,
    })


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check with component status

    Answers 503 when the database is unreachable.
    """
    settings = get_settings()
    health_status = {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
        "components": {},
    }

    overall_healthy = True

    try:
        db.execute(text("SELECT 1"))
        db.commit()
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except Exception as e:
        overall_healthy = False
        logger.error(f"Database health check failed: {e}", exc_info=True)
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
            "error": type(e).__name__,
        }

    tracker = get_rate_limit_tracker()
    limited = [
        service for service in SERVICE_QUOTAS
        if not tracker.check_rate_limit(service)["allowed"]
    ]
    health_status["components"]["external_apis"] = {
        "status": "degraded" if limited else "healthy",
        "tracking_enabled": settings.enable_api_tracking,
        "rate_limited_services": limited,
    }

    health_status["components"]["tracing"] = {
        "status": "enabled" if settings.enable_tracing else "disabled",
        "exporter": settings.tracing_exporter if settings.enable_tracing else None,
    }

    if not overall_healthy:
        health_status["status"] = "unhealthy"
        body = success_response(health_status, "Service unhealthy")
        body["success"] = False
        return JSONResponse(status_code=503, content=body)

    if limited:
        health_status["status"] = "degraded"
    return success_response(health_status)
