"""
External API usage, error log and alert models
"""
from enum import Enum
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, Float, Integer,
                        String, Text, UniqueConstraint, Uuid)

from jobtrail.core.database import Base
from jobtrail.utils.datetime_utils import isoformat, utc_now


class AlertType(str, Enum):
    RATE_LIMIT_WARNING = "RATE_LIMIT_WARNING"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    ERROR_SPIKE = "ERROR_SPIKE"
    SERVICE_DOWN = "SERVICE_DOWN"
    SLOW_RESPONSE = "SLOW_RESPONSE"
    QUOTA_WARNING = "QUOTA_WARNING"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _empty_hourly_stats():
    return [{"hour": h, "calls": 0, "errors": 0} for h in range(24)]


class ApiUsage(Base):
    """Per-service, per-UTC-day aggregate of outbound API calls"""
    __tablename__ = "api_usage"
    __table_args__ = (UniqueConstraint("service", "usage_date", name="uq_api_usage_service_date"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    service = Column(String(50), nullable=False, index=True)
    usage_date = Column(Date, nullable=False, index=True)

    total_calls = Column(Integer, default=0, nullable=False)
    successful_calls = Column(Integer, default=0, nullable=False)
    failed_calls = Column(Integer, default=0, nullable=False)
    rate_limit_hits = Column(Integer, default=0, nullable=False)

    total_response_time_ms = Column(Float, default=0.0, nullable=False)
    min_response_time_ms = Column(Float, nullable=True)
    max_response_time_ms = Column(Float, nullable=True)

    total_request_bytes = Column(Integer, default=0, nullable=False)
    total_response_bytes = Column(Integer, default=0, nullable=False)

    hourly_stats = Column(JSON, nullable=False, default=_empty_hourly_stats)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    @property
    def avg_response_time_ms(self) -> float:
        if not self.total_calls:
            return 0.0
        return round(self.total_response_time_ms / self.total_calls, 1)

    @property
    def error_rate(self) -> float:
        if not self.total_calls:
            return 0.0
        return self.failed_calls / self.total_calls * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "date": self.usage_date.isoformat(),
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "rate_limit_hits": self.rate_limit_hits,
            "avg_response_time_ms": self.avg_response_time_ms,
            "min_response_time_ms": self.min_response_time_ms,
            "max_response_time_ms": self.max_response_time_ms,
            "total_request_bytes": self.total_request_bytes,
            "total_response_bytes": self.total_response_bytes,
            "hourly_stats": self.hourly_stats or [],
        }


class ApiErrorLog(Base):
    __tablename__ = "api_error_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    service = Column(String(50), nullable=False, index=True)
    endpoint = Column(String(1024), nullable=True)
    method = Column(String(10), nullable=True)
    status_code = Column(Integer, nullable=True)
    error_type = Column(String(100), nullable=True, index=True)
    error_message = Column(Text, nullable=True)
    response_time_ms = Column(Float, nullable=True)
    resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Uuid, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "service": self.service,
            "endpoint": self.endpoint,
            "method": self.method,
            "status_code": self.status_code,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "response_time_ms": self.response_time_ms,
            "resolved": self.resolved,
            "resolved_at": isoformat(self.resolved_at),
            "resolved_by": str(self.resolved_by) if self.resolved_by else None,
            "resolution_notes": self.resolution_notes,
            "created_at": isoformat(self.created_at),
        }


class ApiAlert(Base):
    __tablename__ = "api_alerts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    service = Column(String(50), nullable=False, index=True)
    alert_type = Column(String(50), nullable=False, index=True)
    severity = Column(String(20), nullable=False, default=AlertSeverity.MEDIUM.value)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    acknowledged = Column(Boolean, default=False, nullable=False, index=True)
    acknowledged_at = Column(DateTime, nullable=True)
    acknowledged_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "service": self.service,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "message": self.message,
            "details": self.details or {},
            "acknowledged": self.acknowledged,
            "acknowledged_at": isoformat(self.acknowledged_at),
            "acknowledged_by": str(self.acknowledged_by) if self.acknowledged_by else None,
            "created_at": isoformat(self.created_at),
        }
