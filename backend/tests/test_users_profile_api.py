"""
Tests for the profile lifecycle, entry collections and completeness routes
"""
from conftest import register_and_login

from jobtrail.core.responses import ErrorCode


def test_me_without_profile_is_not_found(client):
    """404 on /api/users/me tells the client to auto-register"""
    headers = register_and_login(client, "newbie")
    response = client.get("/api/users/me", headers=headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == ErrorCode.NOT_FOUND


def test_register_prefills_profile(client):
    headers = register_and_login(client, "kim")
    response = client.post("/api/users/register", headers=headers)
    assert response.status_code == 201
    profile = response.json()["data"]
    assert profile["name"] == "kim"
    assert profile["email"] == "kim@example.com"

    again = client.post("/api/users/register", headers=headers)
    assert again.status_code == 409


def test_partial_profile_update(client, auth_headers):
    response = client.put("/api/users/me", json={"headline": "Data Engineer"}, headers=auth_headers)
    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["headline"] == "Data Engineer"
    assert profile["name"] == "Alice Example"


def test_entry_crud(client, auth_headers):
    created = client.post("/api/profile/skills", json={"name": "Python", "category": "Technical"},
                          headers=auth_headers)
    assert created.status_code == 201
    skill_id = created.json()["data"]["id"]

    updated = client.put(f"/api/profile/skills/{skill_id}", json={"proficiency": "Expert"},
                         headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["proficiency"] == "Expert"

    listing = client.get("/api/profile/skills", headers=auth_headers)
    assert [s["name"] for s in listing.json()["data"]] == ["Python"]

    assert client.delete(f"/api/profile/skills/{skill_id}", headers=auth_headers).status_code == 200
    assert client.get("/api/profile/skills", headers=auth_headers).json()["data"] == []


def test_entries_of_other_users_are_not_found(client, auth_headers):
    created = client.post("/api/profile/employment", json={"title": "Engineer", "company": "Acme"},
                          headers=auth_headers)
    entry_id = created.json()["data"]["id"]

    intruder = register_and_login(client, "oscar")
    client.post("/api/users/register", headers=intruder)
    response = client.put(f"/api/profile/employment/{entry_id}", json={"title": "Hacked"}, headers=intruder)
    assert response.status_code == 404


def test_completeness_of_stored_profile(client, auth_headers):
    before = client.get("/api/users/me/completeness", headers=auth_headers).json()["data"]["overall_score"]
    client.put("/api/users/me", json={
        "headline": "Nurse Practitioner",
        "industry": "Healthcare",
        "experience_level": "Mid",
    }, headers=auth_headers)
    client.post("/api/profile/education", json={
        "institution": "Nursing College",
        "achievements": "Summa cum laude, clinical excellence award",
    }, headers=auth_headers)

    report = client.get("/api/users/me/completeness", headers=auth_headers).json()["data"]
    assert report["overall_score"] > before
    assert report["industry"] == "Healthcare"


def test_completeness_industry_override(client, auth_headers):
    response = client.get("/api/users/me/completeness", params={"industry": "Finance"}, headers=auth_headers)
    data = response.json()["data"]
    assert data["industry"] == "Finance"
    assert data["benchmark"] == {"average": 72, "excellent": 88}


def test_score_arbitrary_record_without_auth(client):
    response = client.post("/api/profile/completeness", json={"name": "Sam", "email": "sam@example.com"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["sections"]["basic_info"]["score"] == 60
