"""
Admin views over outbound API usage, errors, alerts and quotas
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from jobtrail.core.auth import require_admin
from jobtrail.core.database import get_db
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import success_response
from jobtrail.models.user import User
from jobtrail.services.api_monitoring_service import ApiMonitoringService

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/api-monitoring", tags=["api-monitoring"])


class ResolveErrorRequest(BaseModel):
    notes: Optional[str] = None


@router.get("/dashboard")
async def get_dashboard(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Today and last-7-day totals, per-service status and open alerts"""
    return success_response(ApiMonitoringService(db).get_dashboard())


@router.get("/usage/{service}")
async def get_service_usage(
    service: str,
    days: int = Query(7, ge=1, le=90),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(ApiMonitoringService(db).get_service_usage(service, days))


@router.get("/errors")
async def list_errors(
    service: Optional[str] = Query(None),
    resolved: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(ApiMonitoringService(db).list_errors(service, resolved, page, limit))


@router.put("/errors/{error_id}/resolve")
async def resolve_error(
    error_id: UUID,
    request: Optional[ResolveErrorRequest] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    notes = request.notes if request else None
    error = ApiMonitoringService(db).resolve_error(error_id, admin.id, notes)
    logger.info(f"API error {error_id} resolved", extra={"resolved_by": str(admin.id)})
    return success_response(error.to_dict(), "Error marked as resolved")


@router.get("/alerts")
async def list_alerts(
    service: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    acknowledged: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(
        ApiMonitoringService(db).list_alerts(service, severity, acknowledged, page, limit)
    )


@router.put("/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    alert = ApiMonitoringService(db).acknowledge_alert(alert_id, admin.id)
    return success_response(alert.to_dict(), "Alert acknowledged")


@router.get("/quotas")
async def get_quotas(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(ApiMonitoringService(db).get_quotas())


@router.get("/performance")
async def get_performance(
    days: int = Query(7, ge=1, le=90),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(ApiMonitoringService(db).get_performance(days))


@router.get("/reports/weekly")
async def get_weekly_report(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(ApiMonitoringService(db).get_weekly_report())


@router.get("/services")
async def list_services(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success_response(ApiMonitoringService(db).list_services())
