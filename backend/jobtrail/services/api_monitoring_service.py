"""
Outbound API usage monitoring

Every call made through ``TrackedClient`` (or reported directly with
``record_api_call``) updates the per-day ``ApiUsage`` aggregate, writes an
``ApiErrorLog`` on failure and raises ``ApiAlert`` rows when quotas, error
rates or response times cross their thresholds. The admin dashboard reads
the same tables.
"""
import math
import threading
import time
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobtrail.core.database import get_session_local
from jobtrail.core.exceptions import NotFoundError, ValidationFailedError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.metrics import (external_api_call_duration_seconds,
                                   external_api_calls_total)
from jobtrail.core.responses import ErrorCode
from jobtrail.models.api_usage import (AlertSeverity, AlertType, ApiAlert,
                                       ApiErrorLog, ApiUsage)
from jobtrail.utils.datetime_utils import isoformat, utc_now
from jobtrail.utils.numbers import percentage, round_half_up

logger = LoggingConfig.get_logger(__name__)

DEFAULT_WARNING_THRESHOLD = 0.8

SERVICE_QUOTAS: Dict[str, Dict[str, Any]] = {
    "gemini": {
        "name": "Google Gemini AI",
        "daily_limit": 1500,
        "minute_limit": 15,
        "warning_threshold": 0.8,
    },
    "eventbrite": {
        "name": "Eventbrite API",
        "minute_limit": 500,
        "hourly_limit": 2000,
    },
    "bls": {
        "name": "Bureau of Labor Statistics",
        "daily_limit": 500,
    },
    "github": {
        "name": "GitHub API",
        "hourly_limit": 60,
    },
    "openalex": {
        "name": "OpenAlex API",
        "warning_threshold": 0.9,
    },
    "wikidata": {
        "name": "Wikidata Query Service",
        "warning_threshold": 0.9,
    },
    "wikipedia": {
        "name": "Wikipedia API",
        "warning_threshold": 0.9,
    },
    "clerk": {
        "name": "Clerk Authentication",
        "monthly_limit": 10000,
    },
    "geocoding": {
        "name": "Geocoding Service",
        "daily_limit": 2500,
    },
}

# window name -> (quota key, window length in seconds)
RATE_LIMIT_WINDOWS = {
    "minute": ("minute_limit", 60),
    "hour": ("hourly_limit", 3600),
    "day": ("daily_limit", 86400),
}

ERROR_SPIKE_THRESHOLD = 10
SLOW_RESPONSE_ALERT_MS = 5000
SLOW_SERVICE_MS = 2000
SLOW_PERFORMANCE_MS = 1000
QUOTA_REPORT_WARNING_PERCENT = 80


def warning_threshold(service: str) -> float:
    return SERVICE_QUOTAS.get(service, {}).get("warning_threshold", DEFAULT_WARNING_THRESHOLD)


def require_known_service(service: str) -> Dict[str, Any]:
    quota = SERVICE_QUOTAS.get(service)
    if quota is None:
        raise ValidationFailedError(
            f"Unknown service: {service}. Must be one of: {', '.join(SERVICE_QUOTAS)}",
            error_code=ErrorCode.INVALID_INPUT,
        )
    return quota


class RateLimitTracker:
    """
    In-process fixed-window call counters per service

    Windows are aligned to the epoch (minute, hour, UTC day) and reset when
    a call lands in a later window.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        # service -> window -> (window index, count)
        self._windows: Dict[str, Dict[str, List[int]]] = {}

    def _current(self, service: str, window: str, now: float) -> int:
        _, length = RATE_LIMIT_WINDOWS[window]
        index = int(now // length)
        slot = self._windows.setdefault(service, {}).get(window)
        if slot is None or slot[0] != index:
            return 0
        return slot[1]

    def record(self, service: str):
        now = self._clock()
        with self._lock:
            windows = self._windows.setdefault(service, {})
            for window, (_, length) in RATE_LIMIT_WINDOWS.items():
                index = int(now // length)
                slot = windows.get(window)
                if slot is None or slot[0] != index:
                    windows[window] = [index, 1]
                else:
                    slot[1] += 1

    def usage(self, service: str) -> Dict[str, int]:
        now = self._clock()
        with self._lock:
            return {window: self._current(service, window, now) for window in RATE_LIMIT_WINDOWS}

    def check_rate_limit(self, service: str) -> Dict[str, Any]:
        """
        Check the most restrictive configured window for a service

        Returns:
            ``{allowed, remaining, reset_in_seconds, window}``; ``remaining``
            and ``window`` are None when the service has no windowed limits
        """
        quota = SERVICE_QUOTAS.get(service, {})
        now = self._clock()
        tightest: Optional[Dict[str, Any]] = None
        with self._lock:
            for window, (quota_key, length) in RATE_LIMIT_WINDOWS.items():
                limit = quota.get(quota_key)
                if not limit:
                    continue
                remaining = max(0, limit - self._current(service, window, now))
                reset_in = int(math.ceil(length - (now % length)))
                if tightest is None or remaining < tightest["remaining"]:
                    tightest = {"remaining": remaining, "reset_in_seconds": reset_in, "window": window}

        if tightest is None:
            return {"allowed": True, "remaining": None, "reset_in_seconds": None, "window": None}
        return {"allowed": tightest["remaining"] > 0, **tightest}

    def reset(self):
        with self._lock:
            self._windows.clear()


_tracker: Optional[RateLimitTracker] = None
_tracker_lock = threading.Lock()


def get_rate_limit_tracker() -> RateLimitTracker:
    """Process-wide tracker shared by every TrackedClient"""
    global _tracker
    if _tracker is None:
        with _tracker_lock:
            if _tracker is None:
                _tracker = RateLimitTracker()
    return _tracker


def _empty_totals() -> Dict[str, Any]:
    return {
        "total_calls": 0,
        "successful_calls": 0,
        "failed_calls": 0,
        "rate_limit_hits": 0,
    }


def _with_success_rate(totals: Dict[str, Any]) -> Dict[str, Any]:
    totals["success_rate"] = percentage(totals["successful_calls"], totals["total_calls"], digits=2)
    return totals


class ApiMonitoringService:
    """Record outbound API calls and answer the monitoring dashboard"""

    def __init__(self, db: Session, tracker: Optional[RateLimitTracker] = None):
        self.db = db
        self.tracker = tracker or get_rate_limit_tracker()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_api_call(
        self,
        service: str,
        endpoint: str,
        method: str,
        status_code: Optional[int],
        response_time_ms: float,
        request_size: int = 0,
        response_size: int = 0,
        error: Optional[BaseException] = None,
    ) -> Optional[ApiUsage]:
        """
        Record one outbound call

        Never raises: monitoring problems are logged and the caller carries on.

        Returns:
            Today's usage row for the service, or None if recording failed
        """
        failed = error is not None or status_code is None or status_code >= 400
        rate_limited = status_code == 429
        outcome = "rate_limited" if rate_limited else ("failure" if failed else "success")

        try:
            external_api_calls_total.labels(service=service, outcome=outcome).inc()
            external_api_call_duration_seconds.labels(service=service).observe(response_time_ms / 1000.0)
            self.tracker.record(service)
            now = utc_now()
            usage = self._usage_row(service, now.date())
            usage.total_calls += 1
            if failed:
                usage.failed_calls += 1
            else:
                usage.successful_calls += 1
            if rate_limited:
                usage.rate_limit_hits += 1
            usage.total_response_time_ms += response_time_ms
            usage.min_response_time_ms = (
                response_time_ms if usage.min_response_time_ms is None
                else min(usage.min_response_time_ms, response_time_ms)
            )
            usage.max_response_time_ms = (
                response_time_ms if usage.max_response_time_ms is None
                else max(usage.max_response_time_ms, response_time_ms)
            )
            usage.total_request_bytes += request_size or 0
            usage.total_response_bytes += response_size or 0

            hourly = [dict(bucket) for bucket in usage.hourly_stats or []] or [
                {"hour": h, "calls": 0, "errors": 0} for h in range(24)
            ]
            hourly[now.hour]["calls"] += 1
            if failed:
                hourly[now.hour]["errors"] += 1
            usage.hourly_stats = hourly

            if failed:
                self.db.add(ApiErrorLog(
                    service=service,
                    endpoint=endpoint,
                    method=method.upper(),
                    status_code=status_code,
                    error_type=type(error).__name__ if error is not None else f"HTTP_{status_code}",
                    error_message=str(error) if error is not None else f"HTTP {status_code} from {endpoint}",
                    response_time_ms=response_time_ms,
                ))
            self.db.commit()

            self._check_quota(service, usage)
            if rate_limited:
                self._raise_alert(
                    service, AlertType.RATE_LIMIT_EXCEEDED, AlertSeverity.HIGH,
                    f"Rate limit exceeded for {service}",
                    {"status_code": status_code, "endpoint": endpoint},
                    since=now - timedelta(hours=1),
                )
            if failed:
                self._check_error_spike(service, now)
            if response_time_ms > SLOW_RESPONSE_ALERT_MS:
                self._raise_alert(
                    service, AlertType.SLOW_RESPONSE, AlertSeverity.LOW,
                    f"Slow response from {service}: {round_half_up(response_time_ms)} ms",
                    {"endpoint": endpoint, "response_time_ms": response_time_ms},
                    since=now - timedelta(hours=1),
                )
            return usage
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to record API call: {e}",
                exc_info=True,
                extra={"service": service, "endpoint": endpoint},
            )
            return None

    def _usage_row(self, service: str, usage_date: date) -> ApiUsage:
        usage = self.db.query(ApiUsage).filter(
            ApiUsage.service == service,
            ApiUsage.usage_date == usage_date,
        ).first()
        if usage is None:
            usage = ApiUsage(
                service=service,
                usage_date=usage_date,
                total_calls=0,
                successful_calls=0,
                failed_calls=0,
                rate_limit_hits=0,
                total_response_time_ms=0.0,
                total_request_bytes=0,
                total_response_bytes=0,
                hourly_stats=[{"hour": h, "calls": 0, "errors": 0} for h in range(24)],
            )
            self.db.add(usage)
        return usage

    def _raise_alert(
        self,
        service: str,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        details: Dict[str, Any],
        since,
    ) -> Optional[ApiAlert]:
        """Create an alert unless an unacknowledged one of the same type exists since ``since``"""
        existing = self.db.query(ApiAlert.id).filter(
            ApiAlert.service == service,
            ApiAlert.alert_type == alert_type.value,
            ApiAlert.acknowledged.is_(False),
            ApiAlert.created_at >= since,
        ).first()
        if existing:
            return None
        alert = ApiAlert(
            service=service,
            alert_type=alert_type.value,
            severity=severity.value,
            message=message,
            details=details,
        )
        self.db.add(alert)
        self.db.commit()
        logger.warning(
            f"API alert: {message}",
            extra={"service": service, "alert_type": alert_type.value, "severity": severity.value},
        )
        return alert

    def _check_quota(self, service: str, usage: ApiUsage):
        daily_limit = SERVICE_QUOTAS.get(service, {}).get("daily_limit")
        if not daily_limit:
            return
        ratio = usage.total_calls / daily_limit
        start_of_today = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
        details = {"daily_limit": daily_limit, "used": usage.total_calls}
        if ratio >= 1:
            self._raise_alert(
                service, AlertType.RATE_LIMIT_EXCEEDED, AlertSeverity.HIGH,
                f"{SERVICE_QUOTAS[service]['name']} daily limit reached",
                details, since=start_of_today,
            )
        elif ratio >= warning_threshold(service):
            self._raise_alert(
                service, AlertType.QUOTA_WARNING, AlertSeverity.MEDIUM,
                f"{SERVICE_QUOTAS[service]['name']} usage at {round_half_up(ratio * 100)}% of daily limit",
                details, since=start_of_today,
            )

    def _check_error_spike(self, service: str, now):
        one_hour_ago = now - timedelta(hours=1)
        recent_errors = self.db.query(func.count(ApiErrorLog.id)).filter(
            ApiErrorLog.service == service,
            ApiErrorLog.created_at >= one_hour_ago,
        ).scalar()
        if recent_errors >= ERROR_SPIKE_THRESHOLD:
            self._raise_alert(
                service, AlertType.ERROR_SPIKE, AlertSeverity.HIGH,
                f"{recent_errors} errors in the last hour for {service}",
                {"errors_last_hour": recent_errors}, since=one_hour_ago,
            )

    # ------------------------------------------------------------------
    # Quotas
    # ------------------------------------------------------------------

    def _calls_between(self, service: str, start: date, end: date) -> int:
        total = self.db.query(func.sum(ApiUsage.total_calls)).filter(
            ApiUsage.service == service,
            ApiUsage.usage_date >= start,
            ApiUsage.usage_date <= end,
        ).scalar()
        return int(total or 0)

    @staticmethod
    def _quota_window(limit: Optional[int], used: int) -> Optional[Dict[str, Any]]:
        if not limit:
            return None
        return {
            "limit": limit,
            "used": used,
            "remaining": max(0, limit - used),
            "percent_used": round_half_up(used / limit * 100),
        }

    def get_remaining_quota(self, service: str) -> Dict[str, Any]:
        """
        Daily and monthly quota usage from the database plus the in-process
        minute and hour windows; unlimited windows are None
        """
        quota = require_known_service(service)
        today = utc_now().date()
        daily_used = self._calls_between(service, today, today)
        monthly_used = self._calls_between(service, today.replace(day=1), today)
        windows = self.tracker.usage(service)
        return {
            "service": service,
            "service_name": quota["name"],
            "daily": self._quota_window(quota.get("daily_limit"), daily_used),
            "monthly": self._quota_window(quota.get("monthly_limit"), monthly_used),
            "per_minute": self._quota_window(quota.get("minute_limit"), windows["minute"]),
            "per_hour": self._quota_window(quota.get("hourly_limit"), windows["hour"]),
            "warning_threshold": warning_threshold(service),
        }

    @staticmethod
    def quota_percent(remaining: Dict[str, Any]) -> Optional[int]:
        """Highest percent used across the daily and monthly windows"""
        used = [w["percent_used"] for w in (remaining["daily"], remaining["monthly"]) if w]
        return max(used) if used else None

    def get_quotas(self) -> Dict[str, Any]:
        services = [self.get_remaining_quota(service) for service in SERVICE_QUOTAS]
        warnings = []
        for entry in services:
            for window in ("daily", "monthly", "per_minute", "per_hour"):
                usage = entry[window]
                if usage and usage["percent_used"] >= QUOTA_REPORT_WARNING_PERCENT:
                    warnings.append({
                        "service": entry["service"],
                        "window": window,
                        "percent_used": usage["percent_used"],
                        "remaining": usage["remaining"],
                    })
        return {"services": services, "warnings": warnings}

    def list_services(self) -> List[Dict[str, Any]]:
        return [
            {
                "service": service,
                "name": quota["name"],
                "quotas": {key: value for key, value in quota.items() if key.endswith("_limit")},
                "warning_threshold": warning_threshold(service),
            }
            for service, quota in SERVICE_QUOTAS.items()
        ]

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def _totals_since(self, start: date) -> Dict[str, Any]:
        row = self.db.query(
            func.coalesce(func.sum(ApiUsage.total_calls), 0),
            func.coalesce(func.sum(ApiUsage.successful_calls), 0),
            func.coalesce(func.sum(ApiUsage.failed_calls), 0),
            func.coalesce(func.sum(ApiUsage.rate_limit_hits), 0),
        ).filter(ApiUsage.usage_date >= start).one()
        totals = _empty_totals()
        totals.update(dict(zip(totals.keys(), (int(value) for value in row))))
        return _with_success_rate(totals)

    @staticmethod
    def service_status(usage: Optional[ApiUsage], quota_percent: Optional[int]) -> str:
        """First matching rule wins: inactive, error rate, quota, latency"""
        if usage is None or not usage.total_calls:
            return "inactive"
        if usage.error_rate > 20:
            return "critical"
        if usage.error_rate > 10:
            return "warning"
        if quota_percent is not None and quota_percent >= 90:
            return "quota-critical"
        if quota_percent is not None and quota_percent >= 80:
            return "quota-warning"
        if usage.avg_response_time_ms > SLOW_SERVICE_MS:
            return "slow"
        return "healthy"

    def get_dashboard(self) -> Dict[str, Any]:
        today = utc_now().date()
        todays_usage = {
            usage.service: usage
            for usage in self.db.query(ApiUsage).filter(ApiUsage.usage_date == today).all()
        }

        services = []
        for service, quota in SERVICE_QUOTAS.items():
            usage = todays_usage.get(service)
            remaining = self.get_remaining_quota(service)
            quota_percent = self.quota_percent(remaining)
            services.append({
                "service": service,
                "name": quota["name"],
                "status": self.service_status(usage, quota_percent),
                "calls_today": usage.total_calls if usage else 0,
                "error_rate": percentage(usage.failed_calls, usage.total_calls) if usage else 0.0,
                "avg_response_time_ms": usage.avg_response_time_ms if usage else 0.0,
                "quota_percent_used": quota_percent,
            })

        recent_alerts = self.db.query(ApiAlert).filter(
            ApiAlert.acknowledged.is_(False)
        ).order_by(ApiAlert.created_at.desc()).limit(10).all()
        unresolved_errors = self.db.query(func.count(ApiErrorLog.id)).filter(
            ApiErrorLog.resolved.is_(False)
        ).scalar()

        return {
            "today": self._totals_since(today),
            "last_7_days": self._totals_since(today - timedelta(days=6)),
            "services": services,
            "recent_alerts": [alert.to_dict() for alert in recent_alerts],
            "unresolved_errors": unresolved_errors,
            "generated_at": isoformat(utc_now()),
        }

    def get_service_usage(self, service: str, days: int = 7) -> Dict[str, Any]:
        quota = require_known_service(service)
        start = utc_now().date() - timedelta(days=days - 1)
        rows = self.db.query(ApiUsage).filter(
            ApiUsage.service == service,
            ApiUsage.usage_date >= start,
        ).order_by(ApiUsage.usage_date.asc()).all()

        totals = _empty_totals()
        for row in rows:
            for key in totals:
                totals[key] += getattr(row, key)
        return {
            "service": service,
            "service_name": quota["name"],
            "days": days,
            "daily": [row.to_dict() for row in rows],
            "totals": _with_success_rate(totals),
            "quota": self.get_remaining_quota(service),
        }

    # ------------------------------------------------------------------
    # Errors and alerts
    # ------------------------------------------------------------------

    @staticmethod
    def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
        return {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    def list_errors(
        self,
        service: Optional[str] = None,
        resolved: Optional[bool] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = self.db.query(ApiErrorLog)
        if service:
            query = query.filter(ApiErrorLog.service == service)
        if resolved is not None:
            query = query.filter(ApiErrorLog.resolved.is_(resolved))
        total = query.count()
        errors = query.order_by(ApiErrorLog.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

        summary_rows = self.db.query(
            ApiErrorLog.service,
            func.count(ApiErrorLog.id),
        ).filter(ApiErrorLog.resolved.is_(False)).group_by(ApiErrorLog.service).all()

        return {
            "errors": [error.to_dict() for error in errors],
            "pagination": self._pagination(page, limit, total),
            "summary": [
                {"service": name, "unresolved": count}
                for name, count in sorted(summary_rows, key=lambda row: -row[1])
            ],
        }

    def resolve_error(self, error_id: UUID, user_id: UUID, notes: Optional[str] = None) -> ApiErrorLog:
        error = self.db.query(ApiErrorLog).filter(ApiErrorLog.id == error_id).first()
        if not error:
            raise NotFoundError("Error log not found")
        error.resolved = True
        error.resolved_at = utc_now()
        error.resolved_by = user_id
        error.resolution_notes = notes
        self.db.commit()
        self.db.refresh(error)
        return error

    def list_alerts(
        self,
        service: Optional[str] = None,
        severity: Optional[str] = None,
        acknowledged: Optional[bool] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = self.db.query(ApiAlert)
        if service:
            query = query.filter(ApiAlert.service == service)
        if severity:
            query = query.filter(ApiAlert.severity == severity)
        if acknowledged is not None:
            query = query.filter(ApiAlert.acknowledged.is_(acknowledged))
        total = query.count()
        alerts = query.order_by(ApiAlert.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return {
            "alerts": [alert.to_dict() for alert in alerts],
            "pagination": self._pagination(page, limit, total),
        }

    def acknowledge_alert(self, alert_id: UUID, user_id: UUID) -> ApiAlert:
        alert = self.db.query(ApiAlert).filter(ApiAlert.id == alert_id).first()
        if not alert:
            raise NotFoundError("Alert not found")
        alert.acknowledged = True
        alert.acknowledged_at = utc_now()
        alert.acknowledged_by = user_id
        self.db.commit()
        self.db.refresh(alert)
        return alert

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_performance(self, days: int = 7) -> Dict[str, Any]:
        start = utc_now().date() - timedelta(days=days - 1)
        rows = self.db.query(
            ApiUsage.service,
            func.sum(ApiUsage.total_calls),
            func.sum(ApiUsage.total_response_time_ms),
            func.min(ApiUsage.min_response_time_ms),
            func.max(ApiUsage.max_response_time_ms),
        ).filter(ApiUsage.usage_date >= start).group_by(ApiUsage.service).all()

        services = []
        for service, calls, total_time, min_time, max_time in rows:
            calls = int(calls or 0)
            services.append({
                "service": service,
                "name": SERVICE_QUOTAS.get(service, {}).get("name", service),
                "total_calls": calls,
                "avg_response_time_ms": float(round_half_up(total_time / calls, 1)) if calls else 0.0,
                "min_response_time_ms": min_time,
                "max_response_time_ms": max_time,
            })
        services.sort(key=lambda entry: entry["avg_response_time_ms"], reverse=True)
        return {
            "days": days,
            "services": services,
            "slow_services": [
                entry["service"] for entry in services
                if entry["avg_response_time_ms"] > SLOW_PERFORMANCE_MS
            ],
        }

    def get_weekly_report(self) -> Dict[str, Any]:
        today = utc_now().date()
        start = today - timedelta(days=6)
        rows = self.db.query(
            ApiUsage.usage_date,
            func.sum(ApiUsage.total_calls),
            func.sum(ApiUsage.successful_calls),
            func.sum(ApiUsage.failed_calls),
            func.sum(ApiUsage.rate_limit_hits),
        ).filter(ApiUsage.usage_date >= start).group_by(ApiUsage.usage_date).all()
        by_day = {row[0]: row[1:] for row in rows}

        daily = []
        for offset in range(7):
            day = start + timedelta(days=offset)
            values = by_day.get(day, (0, 0, 0, 0))
            totals = dict(zip(_empty_totals().keys(), (int(value or 0) for value in values)))
            daily.append({"date": day.isoformat(), **_with_success_rate(totals)})

        week_start = utc_now().replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=6)
        error_types = self.db.query(
            ApiErrorLog.error_type,
            func.count(ApiErrorLog.id).label("count"),
        ).filter(ApiErrorLog.created_at >= week_start).group_by(
            ApiErrorLog.error_type
        ).order_by(func.count(ApiErrorLog.id).desc()).limit(10).all()

        alerts = self.db.query(ApiAlert.severity, func.count(ApiAlert.id)).filter(
            ApiAlert.created_at >= week_start
        ).group_by(ApiAlert.severity).all()
        alerts_by_severity = {severity.value: 0 for severity in AlertSeverity}
        alerts_by_severity.update({severity: count for severity, count in alerts})

        summary = _empty_totals()
        for entry in daily:
            for key in summary:
                summary[key] += entry[key]

        return {
            "period": {"start": start.isoformat(), "end": today.isoformat()},
            "summary": _with_success_rate(summary),
            "daily": daily,
            "top_error_types": [
                {"error_type": error_type or "unknown", "count": count}
                for error_type, count in error_types
            ],
            "alerts_by_severity": alerts_by_severity,
            "generated_at": isoformat(utc_now()),
        }


def record_api_call(
    service: str,
    endpoint: str,
    method: str,
    status_code: Optional[int],
    response_time_ms: float,
    request_size: int = 0,
    response_size: int = 0,
    error: Optional[BaseException] = None,
    db: Optional[Session] = None,
) -> Optional[ApiUsage]:
    """
    Record an outbound call, opening a short-lived session when none is given

    Example:
        >>> record_api_call("github", "/repos/x/y", "GET", 200, 120.5)
    """
    if db is not None:
        return ApiMonitoringService(db).record_api_call(
            service, endpoint, method, status_code, response_time_ms,
            request_size, response_size, error,
        )
    session = get_session_local()()
    try:
        return ApiMonitoringService(session).record_api_call(
            service, endpoint, method, status_code, response_time_ms,
            request_size, response_size, error,
        )
    finally:
        session.close()
