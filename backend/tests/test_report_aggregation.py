"""
Tests for report aggregation math, date ranges and filters
"""
from datetime import datetime

import pytest

from jobtrail.core.exceptions import ValidationFailedError
from jobtrail.core.responses import ErrorCode
from jobtrail.models.job_application import JobApplication
from jobtrail.services.auth_service import AuthService
from jobtrail.services.report_aggregation_service import (
    METRIC_FLAGS, ReportAggregationService, parse_date_range, period_key)

NOW = datetime(2024, 6, 15, 12, 0)
ALL_METRICS = {flag: True for flag in METRIC_FLAGS}


def _history(*entries):
    return [{"status": status, "changed_at": f"{day}T00:00:00", "notes": None} for status, day in entries]


def _application(user_id, title, company, status, created, history, **fields):
    created_at = datetime.fromisoformat(f"{created}T00:00:00")
    return JobApplication(
        user_id=user_id,
        title=title,
        company=company,
        status=status,
        status_history=history,
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )


@pytest.fixture
def seeded(db):
    """Four applications in the last 30 days plus one stale application"""
    user = AuthService(db).register_user("reporter", "reporter@example.com", "password123")
    db.add_all([
        _application(user.id, "Backend Engineer", "Acme", "Interview", "2024-06-01",
                     _history(("Interested", "2024-06-01"), ("Applied", "2024-06-02"),
                              ("Interview", "2024-06-06")),
                     industry="Technology", location="Austin, TX"),
        _application(user.id, "Data Analyst", "Globex", "Applied", "2024-06-03",
                     _history(("Applied", "2024-06-03")),
                     industry="Finance", location="Remote"),
        _application(user.id, "Platform Engineer", "Acme", "Interested", "2024-06-10",
                     _history(("Interested", "2024-06-10")),
                     next_action_date=datetime(2024, 6, 14, 9, 0)),
        _application(user.id, "Product Manager", "Initech", "Offer", "2024-06-04",
                     _history(("Applied", "2024-06-04"), ("Phone Screen", "2024-06-06"),
                              ("Offer", "2024-06-10")),
                     industry="Technology"),
        _application(user.id, "Support Lead", "Umbrella", "Applied", "2024-04-01",
                     _history(("Applied", "2024-04-01")),
                     industry="Healthcare"),
    ])
    db.commit()
    return user


def _aggregate(db, user, date_range=None, filters=None, metrics=None):
    definition = {
        "name": "Test Report",
        "metrics": metrics or ALL_METRICS,
        "date_range": date_range or {"type": "last30days"},
        "filters": filters or {},
    }
    return ReportAggregationService(db).aggregate(user.id, definition, now=NOW)


def test_counts_and_conversion_rates(db, seeded):
    data = _aggregate(db, seeded)
    assert data["total_jobs"] == 4
    assert data["total_applications"] == 3
    assert data["interview_conversion_rate"] == {"applied": 3, "interviews": 2, "rate": 66.7}
    assert data["offer_conversion_rate"] == {"applied": 3, "offers": 1, "rate": 33.3}
    assert data["average_response_time"] == {"average_days": 3.0, "count": 2}


def test_status_distribution_is_zero_filled(db, seeded):
    distribution = _aggregate(db, seeded)["status_distribution"]
    assert len(distribution) == 6
    by_status = {row["status"]: row for row in distribution}
    assert by_status["Interested"] == {"status": "Interested", "count": 1, "percentage": 25.0}
    assert by_status["Rejected"]["count"] == 0


def test_top_companies_and_unknown_industry(db, seeded):
    data = _aggregate(db, seeded)
    assert data["top_companies"][0] == {"company": "Acme", "count": 2}
    industries = {row["industry"] for row in data["applications_by_industry"]}
    assert "Unknown" in industries


def test_weekly_trends(db, seeded):
    data = _aggregate(db, seeded)
    assert data["application_trend"] == [
        {"period": "2024-W22", "count": 1},
        {"period": "2024-W23", "count": 2},
        {"period": "2024-W24", "count": 1},
    ]
    assert data["interview_trend"] == [{"period": "2024-W23", "count": 2}]


def test_monthly_trend_for_long_ranges(db, seeded):
    data = _aggregate(db, seeded, date_range={"type": "allTime"})
    assert data["date_range"]["start"] is None
    assert [row["period"] for row in data["application_trend"]] == ["2024-04", "2024-06"]


def test_ghosted_and_follow_up(db, seeded):
    data = _aggregate(db, seeded, date_range={"type": "last90days"})
    assert data["total_jobs"] == 5
    assert data["ghosted_applications"] == 1
    assert data["follow_up_needed"] == 2

    filtered = _aggregate(db, seeded, date_range={"type": "last90days"}, filters={"exclude_ghosted": True})
    assert filtered["total_jobs"] == 4


def test_role_and_company_filters(db, seeded):
    assert _aggregate(db, seeded, filters={"roles": ["ENGINEER"]})["total_jobs"] == 2
    assert _aggregate(db, seeded, filters={"companies": ["Globex"]})["total_jobs"] == 1
    assert _aggregate(db, seeded, filters={"locations": ["austin"]})["total_jobs"] == 1


def test_only_enabled_metrics_are_returned(db, seeded):
    data = _aggregate(db, seeded, metrics={"total_applications": True})
    assert "total_applications" in data
    assert "status_distribution" not in data
    assert data["report_name"] == "Test Report"
    assert data["date_range"]["label"] == "Last 30 days"


def test_last_month_bounds():
    start, end, label = parse_date_range({"type": "lastMonth"}, now=datetime(2024, 3, 10, 8, 0))
    assert start == datetime(2024, 2, 1)
    assert end == datetime(2024, 2, 29, 23, 59, 59, 999999)
    assert label == "Last month"


def test_custom_range_parses_iso_dates():
    start, end, _ = parse_date_range(
        {"type": "custom", "start_date": "2024-01-01", "end_date": "2024-01-31T00:00:00Z"}
    )
    assert start == datetime(2024, 1, 1)
    assert end == datetime(2024, 1, 31)


@pytest.mark.parametrize("date_range, error_code", [
    ({"type": "custom", "start_date": "2024-01-01"}, ErrorCode.MISSING_REQUIRED_FIELD),
    ({"type": "custom", "start_date": "2024-02-01", "end_date": "2024-01-01"}, ErrorCode.INVALID_INPUT),
    ({"type": "custom", "start_date": "yesterday", "end_date": "2024-01-01"}, ErrorCode.INVALID_FORMAT),
    ({"type": "nextDecade"}, ErrorCode.INVALID_INPUT),
])
def test_invalid_date_ranges(date_range, error_code):
    with pytest.raises(ValidationFailedError) as exc_info:
        parse_date_range(date_range)
    assert exc_info.value.error_code == error_code


def test_period_keys():
    assert period_key(datetime(2024, 12, 30), monthly=False) == "2025-W01"
    assert period_key(datetime(2024, 12, 30), monthly=True) == "2024-12"
