"""
Report configurations, generation, export and sharing
"""
import csv
import io
import json
import re
import secrets
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from jobtrail.core.config import get_settings
from jobtrail.core.exceptions import (APIError, NotFoundError,
                                      ValidationFailedError)
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.metrics import (reports_generated_total,
                                   shared_report_views_total)
from jobtrail.core.responses import ErrorCode
from jobtrail.models.report import ReportConfig, SharedReport
from jobtrail.services.auth_service import hash_password, verify_password
from jobtrail.services.report_aggregation_service import \
    ReportAggregationService
from jobtrail.utils.datetime_utils import isoformat, utc_now

logger = LoggingConfig.get_logger(__name__)

CONFIG_FIELDS = {
    "name", "description", "metrics", "date_range", "filters", "visualizations",
}

# Columns of the flattened CSV export
EXPORT_COLUMNS = ["section", "key", "value"]

# Keys of report data that describe the report rather than a metric
SUMMARY_KEYS = ("report_name", "generated_at", "total_jobs")


def _scalar(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return "" if value is None else value


def flatten_report(report_data: Mapping[str, Any]) -> List[Tuple[str, str, Any]]:
    """
    Flatten report data into ``(section, key, value)`` rows

    Scalars land in the ``summary`` section. Dicts give one row per key.
    Lists of dicts are keyed by their first field (status, company, period)
    with one row per remaining field, e.g. ``Applied.count``.
    """
    rows: List[Tuple[str, str, Any]] = []
    for key in SUMMARY_KEYS:
        if key in report_data:
            rows.append(("summary", key, _scalar(report_data[key])))

    for section, value in report_data.items():
        if section in SUMMARY_KEYS:
            continue
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                rows.append((section, str(sub_key), _scalar(sub_value)))
        elif isinstance(value, list):
            for index, item in enumerate(value):
                if not isinstance(item, dict) or not item:
                    rows.append((section, str(index), _scalar(item)))
                    continue
                fields = list(item.items())
                label = fields[0][1]
                for field, field_value in fields[1:]:
                    rows.append((section, f"{label}.{field}", _scalar(field_value)))
        else:
            rows.append(("summary", section, _scalar(value)))
    return rows


def report_to_csv(report_data: Mapping[str, Any]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    writer.writerows(flatten_report(report_data))
    return buffer.getvalue()


def export_filename(report_name: str, extension: str) -> str:
    safe_name = re.sub(r"[^A-Za-z0-9]", "_", report_name or "report")
    return f"{safe_name}_{utc_now().date().isoformat()}.{extension}"


class ReportService:
    """Service for report configurations and shared report snapshots"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.aggregation = ReportAggregationService(db)

    # ------------------------------------------------------------------
    # Configurations
    # ------------------------------------------------------------------

    def list_configs(self, user_id: UUID, include_templates: bool = False) -> Dict[str, Any]:
        user_reports = self.db.query(ReportConfig).filter(
            ReportConfig.user_id == user_id,
            ReportConfig.is_template.is_(False),
        ).order_by(ReportConfig.created_at.desc()).all()

        system_templates: List[ReportConfig] = []
        if include_templates:
            system_templates = self.db.query(ReportConfig).filter(
                ReportConfig.is_template.is_(True),
                ReportConfig.is_public.is_(True),
            ).order_by(ReportConfig.template_category, ReportConfig.name).all()

        return {
            "user_reports": [c.to_dict() for c in user_reports],
            "system_templates": [c.to_dict() for c in system_templates],
            "total_user_reports": len(user_reports),
            "total_templates": len(system_templates),
        }

    def create_config(self, user_id: UUID, data: Dict[str, Any]) -> ReportConfig:
        values = {key: value for key, value in data.items() if key in CONFIG_FIELDS and value is not None}
        config = ReportConfig(user_id=user_id, is_template=False, is_public=False, **values)
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        logger.info(f"Created report config {config.id}", extra={"user_id": str(user_id)})
        return config

    def get_config(self, user_id: UUID, config_id: UUID) -> ReportConfig:
        """Owned config or public template"""
        config = self.db.query(ReportConfig).filter(
            ReportConfig.id == config_id,
            or_(
                ReportConfig.user_id == user_id,
                (ReportConfig.is_template.is_(True)) & (ReportConfig.is_public.is_(True)),
            ),
        ).first()
        if not config:
            raise NotFoundError("Report configuration not found")
        return config

    def _owned_config(self, user_id: UUID, config_id: UUID) -> ReportConfig:
        config = self.db.query(ReportConfig).filter(
            ReportConfig.id == config_id,
            ReportConfig.user_id == user_id,
            ReportConfig.is_template.is_(False),
        ).first()
        if not config:
            raise NotFoundError("Report configuration not found")
        return config

    def update_config(self, user_id: UUID, config_id: UUID, data: Dict[str, Any]) -> ReportConfig:
        config = self._owned_config(user_id, config_id)
        for key, value in data.items():
            if key in CONFIG_FIELDS and value is not None:
                setattr(config, key, value)
        self.db.commit()
        self.db.refresh(config)
        return config

    def delete_config(self, user_id: UUID, config_id: UUID):
        config = self._owned_config(user_id, config_id)
        self.db.delete(config)
        self.db.commit()
        logger.info(f"Deleted report config {config_id}")

    def duplicate_config(self, user_id: UUID, config_id: UUID, name: Optional[str] = None) -> ReportConfig:
        """Copy a template or an owned config into a new config owned by the user"""
        source = self.get_config(user_id, config_id)
        copy = ReportConfig(
            user_id=user_id,
            name=name or f"{source.name} (Copy)",
            description=source.description,
            is_template=False,
            is_public=False,
            template_category=source.template_category,
            metrics=dict(source.metrics or {}),
            date_range=dict(source.date_range or {}),
            filters=dict(source.filters or {}),
            visualizations=dict(source.visualizations or {}),
        )
        self.db.add(copy)
        self.db.commit()
        self.db.refresh(copy)
        return copy

    # ------------------------------------------------------------------
    # Generation and export
    # ------------------------------------------------------------------

    def _resolve_definition(
        self,
        user_id: UUID,
        config_id: Optional[UUID],
        config: Optional[Mapping[str, Any]],
    ) -> Tuple[Optional[ReportConfig], Dict[str, Any]]:
        if config_id:
            saved = self.get_config(user_id, config_id)
            return saved, saved.definition()
        if config:
            return None, {
                "name": config.get("name") or "Custom Report",
                "metrics": dict(config.get("metrics") or {}),
                "date_range": dict(config.get("date_range") or {}),
                "filters": dict(config.get("filters") or {}),
            }
        raise ValidationFailedError(
            "Either config_id or config must be provided",
            error_code=ErrorCode.MISSING_REQUIRED_FIELD,
        )

    def generate(
        self,
        user_id: UUID,
        config_id: Optional[UUID] = None,
        config: Optional[Mapping[str, Any]] = None,
        source: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate report data from a saved config or an ad-hoc definition

        Generating from a saved config bumps its generation counters.

        Raises:
            ValidationFailedError: If neither ``config_id`` nor ``config`` is given
            NotFoundError: If ``config_id`` is not visible to the user
        """
        saved, definition = self._resolve_definition(user_id, config_id, config)
        report_data = self.aggregation.aggregate(user_id, definition)

        if saved is not None:
            saved.last_generated_at = utc_now()
            saved.generation_count = (saved.generation_count or 0) + 1
            self.db.commit()

        reports_generated_total.labels(source=source or ("saved" if saved else "ad_hoc")).inc()
        return {
            "report_data": report_data,
            "config_id": str(saved.id) if saved else None,
            "config_name": definition["name"],
        }

    def export(
        self,
        user_id: UUID,
        export_format: str,
        config_id: Optional[UUID] = None,
        config: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[str, str, str]:
        """
        Generate and serialize a report

        Returns:
            ``(content, media_type, filename)``
        """
        if export_format not in ("csv", "json"):
            raise ValidationFailedError(
                "Export format must be 'csv' or 'json'",
                error_code=ErrorCode.INVALID_FORMAT,
            )
        generated = self.generate(user_id, config_id, config, source="export")
        report_data = generated["report_data"]
        filename = export_filename(generated["config_name"], export_format)
        if export_format == "csv":
            return report_to_csv(report_data), "text/csv", filename
        return json.dumps(report_data, indent=2), "application/json", filename

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def _new_token(self) -> str:
        while True:
            token = secrets.token_urlsafe(32)
            if not self.db.query(SharedReport.id).filter(SharedReport.token == token).first():
                return token

    def share_url(self, token: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/api/public/reports/{token}"

    def share(
        self,
        user_id: UUID,
        config_id: Optional[UUID] = None,
        config: Optional[Mapping[str, Any]] = None,
        expiration_days: Optional[int] = None,
        password: Optional[str] = None,
        allowed_emails: Optional[List[str]] = None,
        share_message: Optional[str] = None,
        shared_with: Optional[List[str]] = None,
    ) -> SharedReport:
        """
        Snapshot a generated report behind a public token

        Raises:
            ValidationFailedError: If ``expiration_days`` is outside 1..max
        """
        if expiration_days is None:
            expiration_days = self.settings.share_default_expiration_days
        max_days = self.settings.share_max_expiration_days
        if not 1 <= expiration_days <= max_days:
            raise ValidationFailedError(
                f"expiration_days must be between 1 and {max_days}",
                error_code=ErrorCode.INVALID_INPUT,
            )

        generated = self.generate(user_id, config_id, config, source="share")
        now = utc_now()
        shared = SharedReport(
            token=self._new_token(),
            user_id=user_id,
            report_config_id=UUID(generated["config_id"]) if generated["config_id"] else None,
            report_name=generated["config_name"],
            report_snapshot=generated["report_data"],
            expires_at=now + timedelta(days=expiration_days),
            password_hash=hash_password(password) if password else None,
            allowed_emails=[email.strip().lower() for email in allowed_emails or []],
            share_message=share_message,
            shared_with=list(shared_with or []),
        )
        self.db.add(shared)
        self.db.commit()
        self.db.refresh(shared)
        logger.info(
            "Shared report created",
            extra={"shared_report_id": str(shared.id), "expires_at": isoformat(shared.expires_at)},
        )
        return shared

    def view_shared(
        self,
        token: str,
        password: Optional[str] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Open a shared report and log the access

        Raises:
            NotFoundError: Unknown token
            APIError: 403 when expired, revoked, the password is wrong or the
                email is not on the allow-list
        """
        shared = self.db.query(SharedReport).filter(SharedReport.token == token).first()
        if not shared:
            shared_report_views_total.labels(outcome="not_found").inc()
            raise NotFoundError("Shared report not found")

        now = utc_now()
        if not shared.is_active:
            shared_report_views_total.labels(outcome="revoked").inc()
            raise APIError(403, "This shared report has been revoked", ErrorCode.FORBIDDEN)
        if shared.is_expired(now):
            shared_report_views_total.labels(outcome="expired").inc()
            raise APIError(403, "This shared report has expired", ErrorCode.TOKEN_EXPIRED)
        if shared.password_hash and not (password and verify_password(password, shared.password_hash)):
            shared_report_views_total.labels(outcome="invalid_password").inc()
            raise APIError(403, "Invalid password", ErrorCode.FORBIDDEN)
        normalized_email = email.strip().lower() if email else None
        if shared.allowed_emails and normalized_email not in shared.allowed_emails:
            shared_report_views_total.labels(outcome="email_denied").inc()
            raise APIError(403, "Access denied. Your email is not authorized.", ErrorCode.FORBIDDEN)

        shared.access_log = [
            *(shared.access_log or []),
            {
                "accessed_at": isoformat(now),
                "ip_address": ip_address,
                "user_agent": user_agent,
                "email": normalized_email,
            },
        ]
        shared.access_count = (shared.access_count or 0) + 1
        shared.last_accessed_at = now
        self.db.commit()
        shared_report_views_total.labels(outcome="granted").inc()

        return {
            "report_data": shared.report_snapshot,
            "report_name": shared.report_name,
            "share_message": shared.share_message,
            "expires_at": isoformat(shared.expires_at),
        }

    def list_shared(self, user_id: UUID) -> List[SharedReport]:
        return self.db.query(SharedReport).filter(
            SharedReport.user_id == user_id
        ).order_by(SharedReport.created_at.desc()).all()

    def _owned_share(self, user_id: UUID, token: str) -> SharedReport:
        shared = self.db.query(SharedReport).filter(
            SharedReport.token == token,
            SharedReport.user_id == user_id,
        ).first()
        if not shared:
            raise NotFoundError("Shared report not found")
        return shared

    def revoke_shared(self, user_id: UUID, token: str) -> SharedReport:
        shared = self._owned_share(user_id, token)
        shared.is_active = False
        shared.revoked_at = utc_now()
        self.db.commit()
        self.db.refresh(shared)
        logger.info(f"Revoked shared report {shared.id}")
        return shared

    def get_access_log(self, user_id: UUID, token: str) -> Dict[str, Any]:
        shared = self._owned_share(user_id, token)
        return {
            "token": shared.token,
            "access_count": shared.access_count,
            "last_accessed_at": isoformat(shared.last_accessed_at),
            "access_log": shared.access_log or [],
        }
