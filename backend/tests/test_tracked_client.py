"""
Tests for the monitored httpx client
"""
import httpx
import pytest

from jobtrail.core.config import get_settings
from jobtrail.models.api_usage import ApiErrorLog, ApiUsage
from jobtrail.services.tracked_client import TrackedClient


class RecordingSink:
    def __init__(self):
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)


def _client(handler, recorder):
    return TrackedClient(
        "github",
        recorder=recorder,
        transport=httpx.MockTransport(handler),
        base_url="https://api.github.com",
    )


def test_successful_call_is_recorded():
    sink = RecordingSink()
    with _client(lambda request: httpx.Response(200, json={"ok": True}), sink) as client:
        response = client.post("/repos/acme/app/issues", json={"title": "Bug"})

    assert response.status_code == 200
    call = sink.calls[0]
    assert call["service"] == "github"
    assert call["endpoint"] == "/repos/acme/app/issues"
    assert call["method"] == "POST"
    assert call["status_code"] == 200
    assert call["error"] is None
    assert call["request_size"] > 0
    assert call["response_size"] == len(response.content)
    assert call["response_time_ms"] >= 0


def test_http_error_is_recorded_with_status():
    sink = RecordingSink()
    with _client(lambda request: httpx.Response(500, text="oops"), sink) as client:
        response = client.get("/rate_limit")

    assert response.status_code == 500
    assert sink.calls[0]["status_code"] == 500
    assert sink.calls[0]["error"] is None


def test_transport_error_is_recorded_and_reraised():
    sink = RecordingSink()

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(refuse, sink) as client:
        with pytest.raises(httpx.ConnectError):
            client.get("/rate_limit")

    call = sink.calls[0]
    assert call["status_code"] is None
    assert isinstance(call["error"], httpx.ConnectError)
    assert call["response_size"] == 0


def test_tracking_can_be_disabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "enable_api_tracking", False)
    sink = RecordingSink()
    with _client(lambda request: httpx.Response(204), sink) as client:
        client.get("/rate_limit")
    assert sink.calls == []


def test_rate_limit_status_uses_shared_tracker():
    sink = RecordingSink()
    with _client(lambda request: httpx.Response(200), sink) as client:
        status = client.rate_limit_status()
    assert status["allowed"] is True
    assert status["remaining"] == 60
    assert status["window"] == "hour"


def test_default_recorder_writes_usage(db):
    handler = httpx.MockTransport(lambda request: httpx.Response(404))
    with TrackedClient("github", transport=handler, base_url="https://api.github.com") as client:
        client.get("/repos/acme/missing")
    with TrackedClient("github", transport=handler, base_url="https://api.github.com") as client:
        client.get("/repos/acme/missing")

    usage = db.query(ApiUsage).filter(ApiUsage.service == "github").one()
    assert usage.total_calls == 2
    assert usage.failed_calls == 2
    assert db.query(ApiErrorLog).count() == 2

    status = client.rate_limit_status()
    assert status["window"] == "hour"
    assert status["remaining"] == 58
