"""
Job application tracking service
"""
import csv
import io
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from jobtrail.core.exceptions import NotFoundError, ValidationFailedError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.metrics import (application_status_changes_total,
                                   applications_created_total)
from jobtrail.core.responses import ErrorCode
from jobtrail.models.job_application import (STATUS_VALUES,
                                             ApplicationPriority,
                                             ApplicationStatus,
                                             JobApplication)
from jobtrail.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)

SORT_COLUMNS = {
    "created_at": JobApplication.created_at.desc(),
    "deadline": JobApplication.deadline.asc(),
    "company": JobApplication.company.asc(),
    "status": JobApplication.status.asc(),
}

EXPORT_COLUMNS = [
    "title", "company", "location", "industry", "job_type", "status", "priority",
    "application_date", "deadline", "salary_min", "salary_max", "job_posting_url",
    "next_action", "next_action_date", "notes", "created_at",
]

EDITABLE_FIELDS = {
    "title", "company", "location", "industry", "job_type", "salary_min", "salary_max",
    "job_posting_url", "description", "priority", "application_date", "deadline",
    "notes", "next_action", "next_action_date",
}


def history_entry(status: str, notes: Optional[str] = None) -> Dict[str, Any]:
    return {"status": status, "changed_at": utc_now().isoformat(), "notes": notes}


class ApplicationService:
    """CRUD, status pipeline, archiving and export for job applications"""

    def __init__(self, db: Session):
        self.db = db

    def _validate_status(self, status: str):
        if status not in STATUS_VALUES:
            raise ValidationFailedError(
                f"Invalid status. Must be one of: {', '.join(STATUS_VALUES)}",
                error_code=ErrorCode.INVALID_INPUT,
            )

    def create_application(self, user_id: UUID, data: Dict[str, Any]) -> JobApplication:
        """
        Create an application

        Raises:
            ValidationFailedError: If title or company is missing or status is unknown
        """
        errors = []
        for field in ("title", "company"):
            if not (data.get(field) or "").strip():
                errors.append({"field": field, "message": f"{field.capitalize()} is required"})
        if errors:
            raise ValidationFailedError("Validation failed", errors=errors)

        status = data.get("status") or ApplicationStatus.INTERESTED.value
        self._validate_status(status)

        values = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        values["title"] = values["title"].strip()
        values["company"] = values["company"].strip()
        if not values.get("priority"):
            values["priority"] = ApplicationPriority.MEDIUM.value
        if status != ApplicationStatus.INTERESTED.value and not values.get("application_date"):
            values["application_date"] = utc_now()

        application = JobApplication(
            user_id=user_id,
            status=status,
            status_history=[history_entry(status, "Application created")],
            **values,
        )
        self.db.add(application)
        self.db.commit()
        self.db.refresh(application)

        applications_created_total.labels(status=status).inc()
        logger.info(
            "Created job application",
            extra={"application_id": str(application.id), "status": status},
        )
        return application

    def get_application(self, user_id: UUID, application_id: UUID) -> JobApplication:
        application = self.db.query(JobApplication).filter(
            JobApplication.id == application_id,
            JobApplication.user_id == user_id,
        ).first()
        if not application:
            raise NotFoundError("Job not found")
        return application

    def list_applications(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        archived: bool = False,
        search: Optional[str] = None,
        sort: str = "created_at",
    ) -> List[JobApplication]:
        query = self.db.query(JobApplication).filter(
            JobApplication.user_id == user_id,
            JobApplication.archived == archived,
        )
        if status:
            query = query.filter(JobApplication.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                JobApplication.title.ilike(pattern),
                JobApplication.company.ilike(pattern),
                JobApplication.location.ilike(pattern),
            ))
        order = SORT_COLUMNS.get(sort, SORT_COLUMNS["created_at"])
        return query.order_by(order, JobApplication.created_at.desc()).all()

    def update_application(self, user_id: UUID, application_id: UUID, data: Dict[str, Any]) -> JobApplication:
        """Update editable fields; a changed ``status`` is recorded in the history"""
        application = self.get_application(user_id, application_id)
        for field in ("title", "company"):
            if field in data and not (data[field] or "").strip():
                raise ValidationFailedError(
                    "Validation failed",
                    errors=[{"field": field, "message": f"{field.capitalize()} cannot be empty"}],
                )
        for key, value in data.items():
            if key in EDITABLE_FIELDS:
                setattr(application, key, value)
        if data.get("status") and data["status"] != application.status:
            self._apply_status(application, data["status"], data.get("status_notes"))
        self.db.commit()
        self.db.refresh(application)
        return application

    def _apply_status(self, application: JobApplication, status: str, notes: Optional[str] = None):
        self._validate_status(status)
        previous = application.status
        application.status = status
        application.status_history = [*(application.status_history or []), history_entry(status, notes)]
        if status == ApplicationStatus.APPLIED.value and not application.application_date:
            application.application_date = utc_now()
        application_status_changes_total.labels(from_status=previous, to_status=status).inc()

    def update_status(
        self,
        user_id: UUID,
        application_id: UUID,
        status: str,
        notes: Optional[str] = None,
        next_action: Optional[str] = None,
        next_action_date=None,
    ) -> JobApplication:
        """Move an application to a new status and record it in the history"""
        application = self.get_application(user_id, application_id)
        self._apply_status(application, status, notes)
        if next_action is not None:
            application.next_action = next_action
        if next_action_date is not None:
            application.next_action_date = next_action_date
        self.db.commit()
        self.db.refresh(application)
        logger.info(f"Application {application.id} moved to {status}")
        return application

    def bulk_update_status(self, user_id: UUID, application_ids: Iterable[UUID], status: str) -> int:
        """Apply one status to several owned applications; returns how many changed"""
        self._validate_status(status)
        ids = list(application_ids)
        applications = self.db.query(JobApplication).filter(
            JobApplication.user_id == user_id,
            JobApplication.id.in_(ids),
        ).all()
        updated = 0
        for application in applications:
            if application.status != status:
                self._apply_status(application, status, "Bulk status update")
                updated += 1
        self.db.commit()
        return updated

    def archive_application(self, user_id: UUID, application_id: UUID, reason: Optional[str] = None) -> JobApplication:
        application = self.get_application(user_id, application_id)
        if application.archived:
            raise ValidationFailedError("Job is already archived", error_code=ErrorCode.INVALID_INPUT)
        application.archived = True
        application.archived_at = utc_now()
        application.archive_reason = reason or "User archived"
        self.db.commit()
        self.db.refresh(application)
        return application

    def restore_application(self, user_id: UUID, application_id: UUID) -> JobApplication:
        application = self.get_application(user_id, application_id)
        if not application.archived:
            raise ValidationFailedError("Job is not archived", error_code=ErrorCode.INVALID_INPUT)
        application.archived = False
        application.archived_at = None
        application.archive_reason = None
        self.db.commit()
        self.db.refresh(application)
        return application

    def delete_application(self, user_id: UUID, application_id: UUID):
        application = self.get_application(user_id, application_id)
        self.db.delete(application)
        self.db.commit()
        logger.info(f"Deleted application {application_id}")

    def get_stats(self, user_id: UUID) -> Dict[str, Any]:
        applications = self.db.query(JobApplication).filter(JobApplication.user_id == user_id).all()
        by_status = {status: 0 for status in STATUS_VALUES}
        total_archived = 0
        for application in applications:
            if application.archived:
                total_archived += 1
                continue
            by_status[application.status] = by_status.get(application.status, 0) + 1
        return {
            "by_status": by_status,
            "total_active": len(applications) - total_archived,
            "total_archived": total_archived,
        }

    def export_json(self, user_id: UUID) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self.list_applications(user_id)]

    def export_csv(self, user_id: UUID) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for application in self.list_applications(user_id):
            row = application.to_dict()
            writer.writerow({column: "" if row.get(column) is None else row[column] for column in EXPORT_COLUMNS})
        return buffer.getvalue()
