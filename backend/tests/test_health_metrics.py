"""
Tests for health checks, the metrics endpoint and request middleware
"""
from sqlalchemy.exc import OperationalError

from jobtrail.core.database import get_db
from jobtrail.services.api_monitoring_service import get_rate_limit_tracker


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"
    assert body["data"]["service"] == "JobTrail"


def test_detailed_health(client):
    data = client.get("/api/health/detailed").json()["data"]
    assert data["status"] == "healthy"
    assert data["components"]["database"]["status"] == "healthy"
    assert data["components"]["external_apis"]["rate_limited_services"] == []
    assert data["components"]["tracing"] == {"status": "disabled", "exporter": None}


def test_detailed_health_degraded_when_rate_limited(client):
    tracker = get_rate_limit_tracker()
    for _ in range(60):
        tracker.record("github")
    data = client.get("/api/health/detailed").json()["data"]
    assert data["status"] == "degraded"
    assert data["components"]["external_apis"]["rate_limited_services"] == ["github"]


def test_detailed_health_unhealthy_database(client):
    class BrokenSession:
        def execute(self, statement):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    client.app.dependency_overrides[get_db] = lambda: BrokenSession()
    response = client.get("/api/health/detailed")
    assert response.status_code == 503
    body = response.json()
    assert body["success"] is False
    assert body["data"]["components"]["database"]["error"] == "OperationalError"


def test_metrics_endpoint(client):
    client.get("/api/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in response.text


def test_request_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert "error_code" in body


def test_api_root(client):
    body = client.get("/api").json()
    assert body["name"] == "JobTrail"
    assert body["status"] == "running"
