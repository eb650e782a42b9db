"""
Job application tracking routes
"""
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from jobtrail.core.auth import get_current_user_required
from jobtrail.core.database import get_db
from jobtrail.core.exceptions import APIError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import ErrorCode, success_response
from jobtrail.models.user import User
from jobtrail.services.application_service import ApplicationService
from jobtrail.utils.datetime_utils import to_naive_utc, utc_today

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


class JobFields(BaseModel):
    """Fields shared by create and update; title and company are checked by the service"""
    title: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)
    job_type: Optional[str] = Field(None, max_length=50)
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    job_posting_url: Optional[str] = Field(None, max_length=1024)
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    application_date: Optional[datetime] = None
    deadline: Optional[date] = None
    notes: Optional[str] = None
    next_action: Optional[str] = Field(None, max_length=255)
    next_action_date: Optional[datetime] = None

    @field_validator("application_date", "next_action_date")
    @classmethod
    def normalize_datetime(cls, value):
        return to_naive_utc(value)


class JobUpdate(JobFields):
    status_notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str
    notes: Optional[str] = None
    next_action: Optional[str] = Field(None, max_length=255)
    next_action_date: Optional[datetime] = None

    @field_validator("next_action_date")
    @classmethod
    def normalize_datetime(cls, value):
        return to_naive_utc(value)


class BulkStatusRequest(BaseModel):
    job_ids: List[UUID] = Field(..., min_length=1)
    status: str


class ArchiveRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


@router.get("")
async def list_jobs(
    status: Optional[str] = Query(None),
    archived: bool = Query(False),
    search: Optional[str] = Query(None),
    sort: str = Query("created_at", pattern="^(created_at|deadline|company|status)$"),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """List the caller's applications, newest first within the chosen sort"""
    applications = ApplicationService(db).list_applications(
        user.id, status=status, archived=archived, search=search, sort=sort
    )
    return success_response([a.to_dict() for a in applications])


@router.post("", status_code=201)
async def create_job(
    request: JobFields,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    application = ApplicationService(db).create_application(user.id, request.model_dump(exclude_none=True))
    return success_response(application.to_dict(), "Job created")


@router.get("/stats")
async def get_job_stats(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Counts by status plus active/archived totals"""
    return success_response(ApplicationService(db).get_stats(user.id))


@router.get("/export")
async def export_jobs(
    format: str = Query("json"),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Export active applications as JSON or CSV"""
    service = ApplicationService(db)
    if format == "json":
        return success_response(service.export_json(user.id))
    if format == "csv":
        filename = f"job_applications_{utc_today().isoformat()}.csv"
        return Response(
            content=service.export_csv(user.id),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    raise APIError(400, "Invalid format. Must be 'json' or 'csv'", ErrorCode.INVALID_FORMAT)


@router.post("/bulk/status")
async def bulk_update_status(
    request: BulkStatusRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    updated = ApplicationService(db).bulk_update_status(user.id, request.job_ids, request.status)
    return success_response({"updated": updated}, f"Updated {updated} jobs")


@router.get("/{job_id}")
async def get_job(
    job_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(ApplicationService(db).get_application(user.id, job_id).to_dict())


@router.put("/{job_id}")
async def update_job(
    job_id: UUID,
    request: JobUpdate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    application = ApplicationService(db).update_application(
        user.id, job_id, request.model_dump(exclude_unset=True)
    )
    return success_response(application.to_dict(), "Job updated")


@router.delete("/{job_id}")
async def delete_job(
    job_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    ApplicationService(db).delete_application(user.id, job_id)
    return success_response(message="Job deleted")


@router.put("/{job_id}/status")
async def update_job_status(
    job_id: UUID,
    request: StatusUpdateRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Move an application through the pipeline"""
    application = ApplicationService(db).update_status(
        user.id,
        job_id,
        request.status,
        notes=request.notes,
        next_action=request.next_action,
        next_action_date=request.next_action_date,
    )
    return success_response(application.to_dict(), "Status updated")


@router.post("/{job_id}/archive")
async def archive_job(
    job_id: UUID,
    request: Optional[ArchiveRequest] = None,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    reason = request.reason if request else None
    application = ApplicationService(db).archive_application(user.id, job_id, reason)
    return success_response(application.to_dict(), "Job archived")


@router.post("/{job_id}/restore")
async def restore_job(
    job_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    application = ApplicationService(db).restore_application(user.id, job_id)
    return success_response(application.to_dict(), "Job restored")
