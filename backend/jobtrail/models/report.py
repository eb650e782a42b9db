"""
Report configuration and shared report models
"""
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (JSON, Boolean, Column, DateTime, ForeignKey, Integer,
                        String, Text, Uuid)

from jobtrail.core.database import Base
from jobtrail.utils.datetime_utils import isoformat, utc_now


class ReportConfig(Base):
    """Saved report definition, or a system template when ``is_template`` is set"""
    __tablename__ = "report_configs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    # Null for system templates
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_template = Column(Boolean, default=False, nullable=False, index=True)
    is_public = Column(Boolean, default=False, nullable=False)
    template_category = Column(String(100), nullable=True)

    metrics = Column(JSON, nullable=False, default=dict)
    date_range = Column(JSON, nullable=False, default=dict)
    filters = Column(JSON, nullable=False, default=dict)
    visualizations = Column(JSON, nullable=False, default=dict)

    last_generated_at = Column(DateTime, nullable=True)
    generation_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def definition(self) -> Dict[str, Any]:
        """The parts of the config the aggregation service consumes"""
        return {
            "name": self.name,
            "metrics": dict(self.metrics or {}),
            "date_range": dict(self.date_range or {}),
            "filters": dict(self.filters or {}),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id) if self.user_id else None,
            "name": self.name,
            "description": self.description,
            "is_template": self.is_template,
            "is_public": self.is_public,
            "template_category": self.template_category,
            "metrics": self.metrics or {},
            "date_range": self.date_range or {},
            "filters": self.filters or {},
            "visualizations": self.visualizations or {},
            "last_generated_at": isoformat(self.last_generated_at),
            "generation_count": self.generation_count,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<ReportConfig(id={self.id}, name={self.name}, template={self.is_template})>"


class SharedReport(Base):
    """Public, time-limited snapshot of a generated report"""
    __tablename__ = "shared_reports"

    id = Column(Uuid, primary_key=True, default=uuid4)
    token = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    report_config_id = Column(Uuid, ForeignKey("report_configs.id", ondelete="SET NULL"), nullable=True)
    report_name = Column(String(255), nullable=False)
    report_snapshot = Column(JSON, nullable=False, default=dict)

    expires_at = Column(DateTime, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    allowed_emails = Column(JSON, nullable=False, default=list)
    share_message = Column(Text, nullable=True)
    shared_with = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)

    access_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)
    access_log = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    @property
    def is_password_protected(self) -> bool:
        return self.password_hash is not None

    def is_expired(self, now) -> bool:
        return self.expires_at <= now

    def to_dict(self, include_snapshot: bool = False) -> Dict[str, Any]:
        data = {
            "id": str(self.id),
            "token": self.token,
            "report_config_id": str(self.report_config_id) if self.report_config_id else None,
            "report_name": self.report_name,
            "expires_at": isoformat(self.expires_at),
            "is_password_protected": self.is_password_protected,
            "allowed_emails": self.allowed_emails or [],
            "share_message": self.share_message,
            "shared_with": self.shared_with or [],
            "is_active": self.is_active,
            "access_count": self.access_count,
            "last_accessed_at": isoformat(self.last_accessed_at),
            "created_at": isoformat(self.created_at),
            "revoked_at": isoformat(self.revoked_at),
        }
        if include_snapshot:
            data["report_snapshot"] = self.report_snapshot
        return data

    def __repr__(self):
        return f"<SharedReport(id={self.id}, report={self.report_name}, active={self.is_active})>"
