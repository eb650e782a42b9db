"""
Report aggregation over a user's job applications

Turns a report definition (metric flags, date range and filters) into the
report data the client renders:
- counts by status, industry and company
- interview and offer conversion rates from the status history
- average response time
- application and interview trends bucketed by ISO week or month
- ghosted and follow-up counts
"""
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from jobtrail.core.exceptions import ValidationFailedError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import ErrorCode
from jobtrail.models.job_application import (STATUS_VALUES,
                                             ApplicationStatus,
                                             JobApplication)
from jobtrail.utils.datetime_utils import (days_between, end_of_day,
                                           isoformat, start_of_day,
                                           to_naive_utc, utc_now)
from jobtrail.utils.numbers import percentage, round_half_up

logger = LoggingConfig.get_logger(__name__)

DEFAULT_DATE_RANGE = "last30days"

DATE_RANGE_LABELS = {
    "last7days": "Last 7 days",
    "last30days": "Last 30 days",
    "last90days": "Last 90 days",
    "thisMonth": "This month",
    "lastMonth": "Last month",
    "thisYear": "This year",
    "custom": "Custom range",
    "allTime": "All time",
}

METRIC_FLAGS = [
    "total_applications",
    "applications_by_status",
    "applications_by_industry",
    "applications_by_company",
    "interview_conversion_rate",
    "offer_conversion_rate",
    "average_response_time",
    "application_trend",
    "interview_trend",
    "top_companies",
    "top_industries",
    "status_distribution",
    "ghosted_applications",
    "follow_up_needed",
]

# Statuses at or beyond "Applied" in the pipeline
APPLIED_OR_BEYOND = {
    ApplicationStatus.APPLIED.value,
    ApplicationStatus.PHONE_SCREEN.value,
    ApplicationStatus.INTERVIEW.value,
    ApplicationStatus.OFFER.value,
    ApplicationStatus.REJECTED.value,
}
INTERVIEW_STATUSES = {
    ApplicationStatus.PHONE_SCREEN.value,
    ApplicationStatus.INTERVIEW.value,
    ApplicationStatus.OFFER.value,
}

GHOSTED_AFTER_DAYS = 30
FOLLOW_UP_AFTER_DAYS = 14
MONTHLY_BUCKETS_AFTER_DAYS = 90
TOP_LIMIT = 10


def _parse_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        raise ValidationFailedError(
            f"Invalid {field}",
            error_code=ErrorCode.INVALID_FORMAT,
            errors=[{"field": field, "message": "Expected an ISO 8601 date"}],
        )


def parse_date_range(
    date_range: Optional[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], datetime, str]:
    """
    Resolve a date range definition to concrete bounds

    Args:
        date_range: ``{"type": ..., "start_date": ..., "end_date": ...}``
        now: Reference time (defaults to the current UTC time)

    Returns:
        ``(start, end, label)``; ``start`` is None for ``allTime``

    Raises:
        ValidationFailedError: For an unknown type, or a custom range that is
            incomplete or inverted
    """
    now = now or utc_now()
    date_range = date_range or {}
    range_type = date_range.get("type") or DEFAULT_DATE_RANGE
    label = DATE_RANGE_LABELS.get(range_type)
    if label is None:
        raise ValidationFailedError(
            f"Unknown date range type: {range_type}",
            error_code=ErrorCode.INVALID_INPUT,
        )

    if range_type == "last7days":
        return now - timedelta(days=7), now, label
    if range_type == "last30days":
        return now - timedelta(days=30), now, label
    if range_type == "last90days":
        return now - timedelta(days=90), now, label
    if range_type == "thisMonth":
        return start_of_day(now.replace(day=1)), now, label
    if range_type == "lastMonth":
        first_of_this_month = start_of_day(now.replace(day=1))
        last_of_previous = first_of_this_month - timedelta(days=1)
        return start_of_day(last_of_previous.replace(day=1)), end_of_day(last_of_previous), label
    if range_type == "thisYear":
        return start_of_day(now.replace(month=1, day=1)), now, label
    if range_type == "allTime":
        return None, now, label

    start_value = date_range.get("start_date")
    end_value = date_range.get("end_date")
    if not start_value or not end_value:
        raise ValidationFailedError(
            "Custom date range requires start_date and end_date",
            error_code=ErrorCode.MISSING_REQUIRED_FIELD,
        )
    start = _parse_datetime(start_value, "start_date")
    end = _parse_datetime(end_value, "end_date")
    if start > end:
        raise ValidationFailedError(
            "start_date must be before end_date",
            error_code=ErrorCode.INVALID_INPUT,
        )
    return start, end, label


def period_key(value: datetime, monthly: bool) -> str:
    """``YYYY-MM`` for monthly buckets, ISO ``YYYY-Www`` otherwise"""
    if monthly:
        return f"{value.year}-{value.month:02d}"
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def _history_times(application: JobApplication, statuses: Iterable[str]) -> List[datetime]:
    wanted = set(statuses)
    times = []
    for entry in application.status_history or []:
        if entry.get("status") in wanted and entry.get("changed_at"):
            times.append(datetime.fromisoformat(entry["changed_at"]))
    return times


def reached(application: JobApplication, statuses: Iterable[str]) -> bool:
    """Whether the application is, or has ever been, in one of ``statuses``"""
    wanted = set(statuses)
    if application.status in wanted:
        return True
    return any(entry.get("status") in wanted for entry in application.status_history or [])


def last_activity(application: JobApplication) -> datetime:
    history = application.status_history or []
    candidates = [application.updated_at or application.created_at]
    if history and history[-1].get("changed_at"):
        candidates.append(datetime.fromisoformat(history[-1]["changed_at"]))
    return max(candidates)


def is_ghosted(application: JobApplication, now: datetime) -> bool:
    """Applied, no response and no activity for ``GHOSTED_AFTER_DAYS``"""
    if application.status != ApplicationStatus.APPLIED.value:
        return False
    return now - last_activity(application) >= timedelta(days=GHOSTED_AFTER_DAYS)


def needs_follow_up(application: JobApplication, now: datetime) -> bool:
    if application.next_action_date and application.next_action_date <= now:
        return True
    return (
        application.status == ApplicationStatus.APPLIED.value
        and now - last_activity(application) >= timedelta(days=FOLLOW_UP_AFTER_DAYS)
    )


def response_days(application: JobApplication) -> Optional[float]:
    """Days between the first move to Applied and the next status change"""
    history = application.status_history or []
    for index, entry in enumerate(history):
        if entry.get("status") != ApplicationStatus.APPLIED.value:
            continue
        for later in history[index + 1:]:
            if later.get("status") != ApplicationStatus.APPLIED.value:
                applied_at = datetime.fromisoformat(entry["changed_at"])
                responded_at = datetime.fromisoformat(later["changed_at"])
                days = days_between(applied_at, responded_at)
                return days if days >= 0 else None
        return None
    return None


def _counts(values: Iterable[Optional[str]]) -> List[Tuple[str, int]]:
    counter = Counter(value or "Unknown" for value in values)
    # Counter.most_common keeps first-seen order among ties
    return counter.most_common()


class ReportAggregationService:
    """Compute report data for one user from a report definition"""

    def __init__(self, db: Session):
        self.db = db

    def fetch_applications(
        self,
        user_id: UUID,
        filters: Mapping[str, Any],
        start: Optional[datetime],
        end: datetime,
        now: datetime,
    ) -> List[JobApplication]:
        query = self.db.query(JobApplication).filter(
            JobApplication.user_id == user_id,
            JobApplication.created_at <= end,
        )
        if start is not None:
            query = query.filter(JobApplication.created_at >= start)
        if filters.get("companies"):
            query = query.filter(JobApplication.company.in_(filters["companies"]))
        if filters.get("industries"):
            query = query.filter(JobApplication.industry.in_(filters["industries"]))
        if filters.get("statuses"):
            query = query.filter(JobApplication.status.in_(filters["statuses"]))
        if filters.get("roles"):
            query = query.filter(or_(*[
                JobApplication.title.ilike(f"%{role}%") for role in filters["roles"]
            ]))
        if filters.get("locations"):
            query = query.filter(or_(*[
                JobApplication.location.ilike(f"%{location}%") for location in filters["locations"]
            ]))
        if filters.get("exclude_archived", True):
            query = query.filter(JobApplication.archived.is_(False))

        applications = query.order_by(JobApplication.created_at.desc()).all()
        if filters.get("exclude_ghosted"):
            applications = [a for a in applications if not is_ghosted(a, now)]
        return applications

    def aggregate(
        self,
        user_id: UUID,
        definition: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Build report data for a definition

        Args:
            user_id: Owner of the applications
            definition: ``{"name", "metrics", "date_range", "filters"}``
            now: Reference time, mainly for tests

        Returns:
            Report data holding one key per enabled metric plus
            ``total_jobs``, ``generated_at``, ``date_range`` and ``report_name``
        """
        now = now or utc_now()
        metrics = definition.get("metrics") or {}
        filters = definition.get("filters") or {}
        start, end, label = parse_date_range(definition.get("date_range"), now)

        applications = self.fetch_applications(user_id, filters, start, end, now)
        span_days = days_between(start, end) if start is not None else 365
        monthly = span_days > MONTHLY_BUCKETS_AFTER_DAYS

        data: Dict[str, Any] = {"total_jobs": len(applications)}

        if metrics.get("total_applications"):
            data["total_applications"] = sum(
                1 for a in applications if a.status != ApplicationStatus.INTERESTED.value
            )
        if metrics.get("applications_by_status"):
            data["applications_by_status"] = [
                {"status": status, "count": count, "percentage": percentage(count, len(applications))}
                for status, count in _counts(a.status for a in applications)
            ]
        if metrics.get("applications_by_industry"):
            data["applications_by_industry"] = [
                {"industry": industry, "count": count, "percentage": percentage(count, len(applications))}
                for industry, count in _counts(a.industry for a in applications)
            ]
        if metrics.get("applications_by_company"):
            data["applications_by_company"] = [
                {"company": company, "count": count}
                for company, count in _counts(a.company for a in applications)
            ]
        if metrics.get("interview_conversion_rate"):
            data["interview_conversion_rate"] = self.conversion_rate(
                applications, INTERVIEW_STATUSES, "interviews"
            )
        if metrics.get("offer_conversion_rate"):
            data["offer_conversion_rate"] = self.conversion_rate(
                applications, {ApplicationStatus.OFFER.value}, "offers"
            )
        if metrics.get("average_response_time"):
            data["average_response_time"] = self.average_response_time(applications)
        if metrics.get("application_trend"):
            data["application_trend"] = self.trend(
                (a.created_at for a in applications), monthly
            )
        if metrics.get("interview_trend"):
            interview_times = [
                changed_at
                for a in applications
                for changed_at in _history_times(
                    a, {ApplicationStatus.PHONE_SCREEN.value, ApplicationStatus.INTERVIEW.value}
                )
                if (start is None or changed_at >= start) and changed_at <= end
            ]
            data["interview_trend"] = self.trend(interview_times, monthly)
        if metrics.get("top_companies"):
            data["top_companies"] = [
                {"company": company, "count": count}
                for company, count in _counts(a.company for a in applications)[:TOP_LIMIT]
            ]
        if metrics.get("top_industries"):
            data["top_industries"] = [
                {"industry": industry, "count": count}
                for industry, count in _counts(a.industry for a in applications)[:TOP_LIMIT]
            ]
        if metrics.get("status_distribution"):
            counts = Counter(a.status for a in applications)
            data["status_distribution"] = [
                {"status": status, "count": counts.get(status, 0),
                 "percentage": percentage(counts.get(status, 0), len(applications))}
                for status in STATUS_VALUES
            ]
        if metrics.get("ghosted_applications"):
            data["ghosted_applications"] = sum(1 for a in applications if is_ghosted(a, now))
        if metrics.get("follow_up_needed"):
            data["follow_up_needed"] = sum(1 for a in applications if needs_follow_up(a, now))

        data["generated_at"] = isoformat(now)
        data["date_range"] = {"start": isoformat(start), "end": isoformat(end), "label": label}
        data["report_name"] = definition.get("name") or "Custom Report"

        logger.debug(
            "Aggregated report data",
            extra={"user_id": str(user_id), "applications": len(applications), "range": label},
        )
        return data

    @staticmethod
    def conversion_rate(
        applications: List[JobApplication],
        target_statuses: Iterable[str],
        target_key: str,
    ) -> Dict[str, Any]:
        applied = [a for a in applications if reached(a, APPLIED_OR_BEYOND)]
        converted = sum(1 for a in applied if reached(a, target_statuses))
        return {
            "applied": len(applied),
            target_key: converted,
            "rate": percentage(converted, len(applied)),
        }

    @staticmethod
    def average_response_time(applications: List[JobApplication]) -> Dict[str, Any]:
        samples = [days for days in (response_days(a) for a in applications) if days is not None]
        if not samples:
            return {"average_days": 0.0, "count": 0}
        return {
            "average_days": float(round_half_up(sum(samples) / len(samples), 1)),
            "count": len(samples),
        }

    @staticmethod
    def trend(timestamps: Iterable[datetime], monthly: bool) -> List[Dict[str, Any]]:
        buckets = Counter(period_key(value, monthly) for value in timestamps)
        return [{"period": period, "count": buckets[period]} for period in sorted(buckets)]
