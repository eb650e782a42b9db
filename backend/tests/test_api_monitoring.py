"""
Tests for outbound API usage monitoring and the admin routes
"""
import pytest
from sqlalchemy.exc import OperationalError

from jobtrail.core.responses import ErrorCode
from jobtrail.models.api_usage import AlertType, ApiAlert, ApiErrorLog, ApiUsage
from jobtrail.services.api_monitoring_service import (
    ERROR_SPIKE_THRESHOLD, ApiMonitoringService, RateLimitTracker, record_api_call)
from jobtrail.utils.datetime_utils import utc_today


class FakeClock:
    def __init__(self, now=120.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(db, clock):
    return ApiMonitoringService(db, tracker=RateLimitTracker(clock))


def _alerts(db, alert_type):
    return db.query(ApiAlert).filter(ApiAlert.alert_type == alert_type.value).all()


def test_tracker_windows(clock):
    tracker = RateLimitTracker(clock)
    for _ in range(15):
        tracker.record("gemini")
    assert tracker.usage("gemini") == {"minute": 15, "hour": 15, "day": 15}
    assert tracker.check_rate_limit("gemini") == {
        "allowed": False, "remaining": 0, "reset_in_seconds": 60, "window": "minute",
    }

    clock.now += 60
    status = tracker.check_rate_limit("gemini")
    assert status["allowed"] is True
    assert status["window"] == "minute"
    assert status["remaining"] == 15
    assert tracker.usage("gemini")["day"] == 15


def test_tracker_without_limits(clock):
    tracker = RateLimitTracker(clock)
    tracker.record("openalex")
    assert tracker.check_rate_limit("openalex") == {
        "allowed": True, "remaining": None, "reset_in_seconds": None, "window": None,
    }


def test_record_success_and_failure(db, service):
    service.record_api_call("github", "/repos", "get", 200, 120.0, request_size=10, response_size=500)
    usage = service.record_api_call("github", "/repos", "get", 503, 80.0)

    assert usage.total_calls == 2
    assert usage.successful_calls == 1
    assert usage.failed_calls == 1
    assert usage.min_response_time_ms == 80.0
    assert usage.max_response_time_ms == 120.0
    assert usage.avg_response_time_ms == 100.0
    assert usage.total_response_bytes == 500
    assert sum(bucket["calls"] for bucket in usage.hourly_stats) == 2

    error = db.query(ApiErrorLog).one()
    assert error.method == "GET"
    assert error.error_type == "HTTP_503"


def test_transport_error_is_logged_by_type(db, service):
    service.record_api_call("github", "/repos", "GET", None, 30.0, error=ConnectionError("refused"))
    error = db.query(ApiErrorLog).one()
    assert error.error_type == "ConnectionError"
    assert error.error_message == "refused"


def test_quota_warning_raised_once_per_day(db, service):
    db.add(ApiUsage(service="gemini", usage_date=utc_today(), total_calls=1199))
    db.commit()

    service.record_api_call("gemini", "/generate", "POST", 200, 50.0)
    service.record_api_call("gemini", "/generate", "POST", 200, 50.0)

    alerts = _alerts(db, AlertType.QUOTA_WARNING)
    assert len(alerts) == 1
    assert alerts[0].severity == "medium"
    assert "80%" in alerts[0].message


def test_rate_limited_response_alerts(db, service):
    usage = service.record_api_call("eventbrite", "/events", "GET", 429, 40.0)
    assert usage.rate_limit_hits == 1
    alerts = _alerts(db, AlertType.RATE_LIMIT_EXCEEDED)
    assert len(alerts) == 1
    assert alerts[0].severity == "high"


def test_error_spike_alert(db, service):
    for _ in range(ERROR_SPIKE_THRESHOLD - 1):
        service.record_api_call("bls", "/series", "GET", 500, 10.0)
    assert _alerts(db, AlertType.ERROR_SPIKE) == []

    service.record_api_call("bls", "/series", "GET", 500, 10.0)
    service.record_api_call("bls", "/series", "GET", 500, 10.0)
    assert len(_alerts(db, AlertType.ERROR_SPIKE)) == 1


def test_slow_response_alert(db, service):
    service.record_api_call("wikipedia", "/page", "GET", 200, 6200.0)
    alerts = _alerts(db, AlertType.SLOW_RESPONSE)
    assert len(alerts) == 1
    assert alerts[0].details["response_time_ms"] == 6200.0


def test_recording_failure_does_not_raise(db, service, monkeypatch):
    def broken_commit():
        raise OperationalError("UPDATE api_usage", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", broken_commit)
    assert service.record_api_call("github", "/repos", "GET", 200, 10.0) is None


def test_missing_response_time_does_not_raise(db, service):
    assert service.record_api_call("github", "/repos", "GET", 200, None) is None
    assert db.query(ApiUsage).count() == 0


def test_module_level_recorder_uses_given_session(db):
    record_api_call("geocoding", "/search", "GET", 200, 25.0, db=db)
    assert db.query(ApiUsage).filter(ApiUsage.service == "geocoding").one().total_calls == 1


def test_service_status_rules(service, db):
    assert service.service_status(None, None) == "inactive"
    usage = ApiUsage(service="github", total_calls=10, failed_calls=3, total_response_time_ms=100.0)
    assert service.service_status(usage, None) == "critical"
    usage.failed_calls = 0
    assert service.service_status(usage, 92) == "quota-critical"
    assert service.service_status(usage, 85) == "quota-warning"
    usage.total_response_time_ms = 30000.0
    assert service.service_status(usage, None) == "slow"
    usage.total_response_time_ms = 100.0
    assert service.service_status(usage, None) == "healthy"


def test_admin_routes_require_admin(client, auth_headers):
    response = client.get("/api/api-monitoring/dashboard", headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == ErrorCode.FORBIDDEN
    assert client.get("/api/api-monitoring/dashboard").status_code == 401


def test_dashboard(client, db, admin_headers):
    monitor = ApiMonitoringService(db)
    for status in (200, 200, 500):
        monitor.record_api_call("github", "/repos", "GET", status, 100.0)

    data = client.get("/api/api-monitoring/dashboard", headers=admin_headers).json()["data"]
    assert data["today"]["total_calls"] == 3
    assert data["today"]["success_rate"] == 66.67
    statuses = {entry["service"]: entry["status"] for entry in data["services"]}
    assert statuses["github"] == "critical"
    assert statuses["bls"] == "inactive"
    assert data["unresolved_errors"] == 1


def test_usage_for_unknown_service(client, admin_headers):
    response = client.get("/api/api-monitoring/usage/myspace", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == ErrorCode.INVALID_INPUT


def test_usage_and_quotas(client, db, admin_headers):
    db.add(ApiUsage(service="bls", usage_date=utc_today(), total_calls=450))
    db.commit()

    usage = client.get("/api/api-monitoring/usage/bls", params={"days": 3}, headers=admin_headers).json()["data"]
    assert usage["totals"]["total_calls"] == 450
    assert usage["quota"]["daily"] == {"limit": 500, "used": 450, "remaining": 50, "percent_used": 90}

    quotas = client.get("/api/api-monitoring/quotas", headers=admin_headers).json()["data"]
    assert {"service": "bls", "window": "daily", "percent_used": 90, "remaining": 50} in quotas["warnings"]


def test_resolve_error_and_acknowledge_alert(client, db, admin_headers):
    ApiMonitoringService(db).record_api_call("eventbrite", "/events", "GET", 429, 40.0)
    error = db.query(ApiErrorLog).one()
    alert = db.query(ApiAlert).one()

    resolved = client.put(f"/api/api-monitoring/errors/{error.id}/resolve", json={"notes": "Backed off"},
                          headers=admin_headers).json()["data"]
    assert resolved["resolved"] is True
    assert resolved["resolution_notes"] == "Backed off"

    unresolved = client.get("/api/api-monitoring/errors", params={"resolved": False},
                            headers=admin_headers).json()["data"]
    assert unresolved["pagination"]["total"] == 0

    acked = client.put(f"/api/api-monitoring/alerts/{alert.id}/acknowledge", headers=admin_headers).json()["data"]
    assert acked["acknowledged"] is True
    assert acked["acknowledged_by"] is not None


def test_services_performance_and_weekly_report(client, db, admin_headers):
    ApiMonitoringService(db).record_api_call("wikidata", "/sparql", "GET", 200, 1500.0)

    services = client.get("/api/api-monitoring/services", headers=admin_headers).json()["data"]
    assert {entry["service"] for entry in services} >= {"gemini", "github", "wikidata"}

    performance = client.get("/api/api-monitoring/performance", headers=admin_headers).json()["data"]
    assert performance["slow_services"] == ["wikidata"]

    weekly = client.get("/api/api-monitoring/reports/weekly", headers=admin_headers).json()["data"]
    assert len(weekly["daily"]) == 7
    assert weekly["summary"]["total_calls"] == 1
