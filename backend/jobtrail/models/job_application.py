"""
Job application model
"""
from enum import Enum
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, ForeignKey,
                        Integer, String, Text, Uuid)

from jobtrail.core.database import Base
from jobtrail.utils.datetime_utils import isoformat, utc_now


class ApplicationStatus(str, Enum):
    """Pipeline stage of an application"""
    INTERESTED = "Interested"
    APPLIED = "Applied"
    PHONE_SCREEN = "Phone Screen"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    REJECTED = "Rejected"


class ApplicationPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


STATUS_VALUES = [s.value for s in ApplicationStatus]


class JobApplication(Base):
    """A tracked job the user is interested in or has applied to"""
    __tablename__ = "job_applications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    company = Column(String(255), nullable=False, index=True)
    location = Column(String(255), nullable=True)
    industry = Column(String(100), nullable=True)
    job_type = Column(String(50), nullable=True)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    job_posting_url = Column(String(1024), nullable=True)
    description = Column(Text, nullable=True)

    status = Column(String(50), nullable=False, default=ApplicationStatus.INTERESTED.value, index=True)
    priority = Column(String(20), nullable=False, default=ApplicationPriority.MEDIUM.value)
    application_date = Column(DateTime, nullable=True)
    deadline = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    next_action = Column(String(255), nullable=True)
    next_action_date = Column(DateTime, nullable=True)

    # [{"status": ..., "changed_at": iso, "notes": ...}], oldest first
    status_history = Column(JSON, nullable=False, default=list)

    archived = Column(Boolean, default=False, nullable=False, index=True)
    archived_at = Column(DateTime, nullable=True)
    archive_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "industry": self.industry,
            "job_type": self.job_type,
            "salary_min": self.salary_min,
            "salary_max": self.salary_max,
            "job_posting_url": self.job_posting_url,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "application_date": isoformat(self.application_date),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "notes": self.notes,
            "next_action": self.next_action,
            "next_action_date": isoformat(self.next_action_date),
            "status_history": self.status_history or [],
            "archived": self.archived,
            "archived_at": isoformat(self.archived_at),
            "archive_reason": self.archive_reason,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<JobApplication(id={self.id}, company={self.company}, status={self.status})>"
