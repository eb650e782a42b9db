"""
Tests for report configuration, generation, export and sharing routes
"""
import csv
import io
from datetime import timedelta

import pytest

from jobtrail.core.responses import ErrorCode
from jobtrail.models.report import SharedReport
from jobtrail.services.report_service import EXPORT_COLUMNS
from jobtrail.services.report_templates import SYSTEM_TEMPLATES, seed_report_templates
from jobtrail.utils.datetime_utils import utc_now

CONFIG = {
    "name": "Pipeline",
    "metrics": {"total_applications": True, "status_distribution": True},
    "date_range": {"type": "last30days"},
}


@pytest.fixture
def jobs(client, auth_headers):
    for company, status in (("Acme", "Applied"), ("Globex", "Interview"), ("Initech", "Interested")):
        response = client.post("/api/jobs", json={
            "title": "Engineer", "company": company, "status": status,
        }, headers=auth_headers)
        assert response.status_code == 201, response.text


def _create_config(client, headers, **overrides):
    response = client.post("/api/reports/configs", json={**CONFIG, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _share(client, headers, **fields):
    response = client.post("/api/reports/share", json={"config": CONFIG, **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_config_crud(client, auth_headers, other_headers):
    config = _create_config(client, auth_headers)
    assert config["is_template"] is False
    assert config["generation_count"] == 0

    updated = client.put(f"/api/reports/configs/{config['id']}", json={"name": "Renamed"},
                         headers=auth_headers).json()["data"]
    assert updated["name"] == "Renamed"
    assert updated["metrics"] == CONFIG["metrics"]

    listing = client.get("/api/reports/configs", headers=auth_headers).json()["data"]
    assert listing["total_user_reports"] == 1
    assert listing["system_templates"] == []

    assert client.get(f"/api/reports/configs/{config['id']}", headers=other_headers).status_code == 404
    assert client.delete(f"/api/reports/configs/{config['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/reports/configs/{config['id']}", headers=auth_headers).status_code == 404


def test_templates_are_listed_and_duplicated(client, db, auth_headers):
    assert seed_report_templates(db) == len(SYSTEM_TEMPLATES)
    assert seed_report_templates(db) == 0

    listing = client.get("/api/reports/configs", params={"include_templates": True},
                         headers=auth_headers).json()["data"]
    assert listing["total_templates"] == len(SYSTEM_TEMPLATES)
    template = listing["system_templates"][0]

    response = client.post(f"/api/reports/configs/{template['id']}/duplicate", headers=auth_headers)
    assert response.status_code == 201
    copy = response.json()["data"]
    assert copy["name"] == f"{template['name']} (Copy)"
    assert copy["is_template"] is False

    # templates themselves are read-only
    response = client.put(f"/api/reports/configs/{template['id']}", json={"name": "Mine"}, headers=auth_headers)
    assert response.status_code == 404


def test_generate_requires_config(client, auth_headers):
    response = client.post("/api/reports/generate", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == ErrorCode.MISSING_REQUIRED_FIELD


def test_generate_from_saved_config_counts(client, auth_headers, jobs):
    config = _create_config(client, auth_headers)
    response = client.post("/api/reports/generate", json={"config_id": config["id"]}, headers=auth_headers)
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["config_name"] == "Pipeline"
    assert result["report_data"]["total_jobs"] == 3
    assert result["report_data"]["total_applications"] == 2

    refreshed = client.get(f"/api/reports/configs/{config['id']}", headers=auth_headers).json()["data"]
    assert refreshed["generation_count"] == 1
    assert refreshed["last_generated_at"] is not None


def test_generate_rejects_bad_date_range(client, auth_headers):
    response = client.post("/api/reports/generate", json={
        "config": {**CONFIG, "date_range": {"type": "custom", "start_date": "2024-01-01"}},
    }, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == ErrorCode.MISSING_REQUIRED_FIELD


def test_csv_export(client, auth_headers, jobs):
    response = client.post("/api/reports/export", params={"format": "csv"},
                           json={"config": CONFIG}, headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="Pipeline_' in response.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == EXPORT_COLUMNS
    assert ["summary", "total_jobs", "3"] in rows
    assert ["status_distribution", "Applied.count", "1"] in rows


def test_export_rejects_unknown_format(client, auth_headers):
    response = client.post("/api/reports/export", params={"format": "pdf"},
                           json={"config": CONFIG}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == ErrorCode.INVALID_FORMAT


def test_share_and_view_publicly(client, auth_headers, jobs):
    shared = _share(client, auth_headers, share_message="My progress")
    assert shared["share_url"] == f"http://testserver/api/public/reports/{shared['token']}"
    assert shared["report_snapshot"]["total_jobs"] == 3
    assert shared["is_password_protected"] is False

    response = client.get(f"/api/public/reports/{shared['token']}")
    assert response.status_code == 200
    view = response.json()["data"]
    assert view["report_name"] == "Pipeline"
    assert view["share_message"] == "My progress"

    log = client.get(f"/api/reports/shared/{shared['token']}/access-log", headers=auth_headers).json()["data"]
    assert log["access_count"] == 1
    assert len(log["access_log"]) == 1

    listing = client.get("/api/reports/shared", headers=auth_headers).json()["data"]
    assert [item["token"] for item in listing] == [shared["token"]]
    assert "report_snapshot" not in listing[0]


def test_snapshot_is_frozen(client, auth_headers, jobs):
    shared = _share(client, auth_headers)
    client.post("/api/jobs", json={"title": "Engineer", "company": "Umbrella"}, headers=auth_headers)
    view = client.get(f"/api/public/reports/{shared['token']}").json()["data"]
    assert view["report_data"]["total_jobs"] == 3


def test_password_protected_share(client, auth_headers):
    shared = _share(client, auth_headers, password="s3cret")
    assert shared["is_password_protected"] is True
    url = f"/api/public/reports/{shared['token']}"

    response = client.get(url)
    assert response.status_code == 403
    assert response.json()["message"] == "Invalid password"
    assert client.get(url, params={"password": "wrong"}).status_code == 403
    assert client.get(url, params={"password": "s3cret"}).status_code == 200


def test_email_restricted_share(client, auth_headers):
    shared = _share(client, auth_headers, allowed_emails=["Coach@Example.com"])
    url = f"/api/public/reports/{shared['token']}"
    assert client.get(url).status_code == 403
    assert client.get(url, params={"email": "someone@example.com"}).status_code == 403
    assert client.get(url, params={"email": "coach@example.com"}).status_code == 200


def test_revoked_share_is_forbidden(client, auth_headers, other_headers):
    shared = _share(client, auth_headers)
    assert client.delete(f"/api/reports/shared/{shared['token']}", headers=other_headers).status_code == 404
    assert client.delete(f"/api/reports/shared/{shared['token']}", headers=auth_headers).status_code == 200

    response = client.get(f"/api/public/reports/{shared['token']}")
    assert response.status_code == 403
    assert response.json()["error_code"] == ErrorCode.FORBIDDEN


def test_expired_share(client, db, auth_headers):
    shared = _share(client, auth_headers, expiration_days=1)
    record = db.query(SharedReport).filter(SharedReport.token == shared["token"]).one()
    record.expires_at = utc_now() - timedelta(minutes=1)
    db.commit()

    response = client.get(f"/api/public/reports/{shared['token']}")
    assert response.status_code == 403
    assert response.json()["error_code"] == ErrorCode.TOKEN_EXPIRED


def test_unknown_share_token(client):
    assert client.get("/api/public/reports/does-not-exist").status_code == 404


@pytest.mark.parametrize("days", [0, 91])
def test_share_expiration_bounds(client, auth_headers, days):
    response = client.post("/api/reports/share", json={"config": CONFIG, "expiration_days": days},
                           headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == ErrorCode.INVALID_INPUT
