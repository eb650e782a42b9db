"""
Custom reports: saved configurations, generation, export and sharing
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from jobtrail.core.auth import get_current_user_required
from jobtrail.core.database import get_db
from jobtrail.core.exceptions import APIError, JobTrailError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import ErrorCode, success_response
from jobtrail.models.user import User
from jobtrail.services.report_service import ReportService

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])
public_router = APIRouter(prefix="/api/public/reports", tags=["reports"])


class ReportConfigCreate(BaseModel):
    """Saved report definition"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    metrics: Dict[str, bool] = Field(default_factory=dict)
    date_range: Dict[str, Any] = Field(default_factory=lambda: {"type": "last30days"})
    filters: Dict[str, Any] = Field(default_factory=dict)
    visualizations: Dict[str, Any] = Field(default_factory=dict)


class ReportConfigUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    metrics: Optional[Dict[str, bool]] = None
    date_range: Optional[Dict[str, Any]] = None
    filters: Optional[Dict[str, Any]] = None
    visualizations: Optional[Dict[str, Any]] = None


class DuplicateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class GenerateRequest(BaseModel):
    """Either a saved ``config_id`` or an ad-hoc ``config``"""
    config_id: Optional[UUID] = None
    config: Optional[Dict[str, Any]] = None


class ShareRequest(GenerateRequest):
    expiration_days: Optional[int] = None
    password: Optional[str] = Field(None, min_length=1)
    allowed_emails: List[EmailStr] = Field(default_factory=list)
    share_message: Optional[str] = None
    shared_with: List[str] = Field(default_factory=list)


# ----------------------------------------------------------------------
# Configurations
# ----------------------------------------------------------------------

@router.get("/configs")
async def list_configs(
    include_templates: bool = Query(False),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """List the caller's saved configs, optionally with system templates"""
    return success_response(ReportService(db).list_configs(user.id, include_templates))


@router.post("/configs", status_code=201)
async def create_config(
    request: ReportConfigCreate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    config = ReportService(db).create_config(user.id, request.model_dump())
    return success_response(config.to_dict(), "Report configuration created")


@router.get("/configs/{config_id}")
async def get_config(
    config_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(ReportService(db).get_config(user.id, config_id).to_dict())


@router.put("/configs/{config_id}")
async def update_config(
    config_id: UUID,
    request: ReportConfigUpdate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    config = ReportService(db).update_config(user.id, config_id, request.model_dump(exclude_unset=True))
    return success_response(config.to_dict(), "Report configuration updated")


@router.delete("/configs/{config_id}")
async def delete_config(
    config_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    ReportService(db).delete_config(user.id, config_id)
    return success_response(message="Report configuration deleted")


@router.post("/configs/{config_id}/duplicate", status_code=201)
async def duplicate_config(
    config_id: UUID,
    request: Optional[DuplicateRequest] = None,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Copy a system template or an owned config"""
    name = request.name if request else None
    config = ReportService(db).duplicate_config(user.id, config_id, name)
    return success_response(config.to_dict(), "Report configuration duplicated")


# ----------------------------------------------------------------------
# Generation and export
# ----------------------------------------------------------------------

@router.post("/generate")
async def generate_report(
    request: GenerateRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Generate report data from a saved config or an ad-hoc definition"""
    try:
        result = ReportService(db).generate(user.id, request.config_id, request.config)
        return success_response(result, "Report generated")
    except JobTrailError:
        raise
    except Exception as e:
        logger.error(f"Error generating report: {e}", exc_info=True)
        raise APIError(500, "Failed to generate report", ErrorCode.INTERNAL_ERROR)


@router.post("/export")
async def export_report(
    request: GenerateRequest,
    format: str = Query("json"),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Generate a report and download it as CSV or JSON"""
    content, media_type, filename = ReportService(db).export(
        user.id, format, request.config_id, request.config
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ----------------------------------------------------------------------
# Sharing
# ----------------------------------------------------------------------

@router.post("/share", status_code=201)
async def share_report(
    request: ShareRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Snapshot a report behind a public, expiring link"""
    service = ReportService(db)
    try:
        shared = service.share(
            user.id,
            config_id=request.config_id,
            config=request.config,
            expiration_days=request.expiration_days,
            password=request.password,
            allowed_emails=[str(email) for email in request.allowed_emails],
            share_message=request.share_message,
            shared_with=request.shared_with,
        )
    except JobTrailError:
        raise
    except Exception as e:
        logger.error(f"Error sharing report: {e}", exc_info=True)
        raise APIError(500, "Failed to share report", ErrorCode.INTERNAL_ERROR)

    data = shared.to_dict(include_snapshot=True)
    data["share_url"] = service.share_url(shared.token)
    return success_response(data, "Report shared")


@router.get("/shared")
async def list_shared_reports(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    service = ReportService(db)
    shares = []
    for shared in service.list_shared(user.id):
        data = shared.to_dict()
        data["share_url"] = service.share_url(shared.token)
        shares.append(data)
    return success_response(shares)


@router.delete("/shared/{token}")
async def revoke_shared_report(
    token: str,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    ReportService(db).revoke_shared(user.id, token)
    return success_response(message="Shared report revoked")


@router.get("/shared/{token}/access-log")
async def get_shared_report_access_log(
    token: str,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(ReportService(db).get_access_log(user.id, token))


@public_router.get("/{token}")
async def view_shared_report(
    token: str,
    http_request: Request,
    password: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Open a shared report; no account required"""
    data = ReportService(db).view_shared(
        token,
        password=password,
        email=email,
        ip_address=http_request.client.host if http_request.client else None,
        user_agent=http_request.headers.get("user-agent"),
    )
    return success_response(data)
