"""
Tests for external advisor relationships, sessions, billing and messaging
"""
from datetime import timedelta

import pytest
from conftest import register_and_login

from jobtrail.core.responses import ErrorCode
from jobtrail.models.advisor import AdvisorRelationship
from jobtrail.utils.datetime_utils import utc_now

BASE = "/api/external-advisors"
COACH_EMAIL = "coach@example.com"


def _invite(client, headers, email=COACH_EMAIL, **fields):
    response = client.post(f"{BASE}/invite", json={"advisor_email": email, **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def coach_headers(client):
    return register_and_login(client, "coach", email=COACH_EMAIL)


@pytest.fixture
def relationship(client, auth_headers, coach_headers):
    """Accepted relationship between alice and the coach"""
    invitation = _invite(client, auth_headers, advisor_name="Casey Coach")
    response = client.post(f"{BASE}/accept-token/{invitation['invitation_token']}", headers=coach_headers)
    assert response.status_code == 200, response.text
    return response.json()["data"]


def test_invite_defaults(client, auth_headers):
    invitation = _invite(client, auth_headers, email="Coach@Example.com")
    assert invitation["status"] == "pending"
    assert invitation["advisor_email"] == COACH_EMAIL
    assert invitation["sender_name"] == "Alice Example"
    assert invitation["shared_data"]["share_salary_info"] is False
    assert len(invitation["invitation_token"]) == 64


def test_invite_requires_email(client, auth_headers):
    response = client.post(f"{BASE}/invite", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == ErrorCode.MISSING_REQUIRED_FIELD


def test_duplicate_invitation_conflicts(client, auth_headers):
    _invite(client, auth_headers)
    response = client.post(f"{BASE}/invite", json={"advisor_email": COACH_EMAIL}, headers=auth_headers)
    assert response.status_code == 409


def test_accept_sets_advisor_and_free_billing(client, relationship, auth_headers, coach_headers):
    assert relationship["status"] == "accepted"
    assert relationship["advisor_id"] is not None
    assert relationship["accepted_at"] is not None

    billing = client.get(f"{BASE}/{relationship['id']}/billing", headers=auth_headers).json()["data"]
    assert billing["billing_type"] == "free"

    advisors = client.get(f"{BASE}/my-advisors", headers=auth_headers).json()["data"]
    clients = client.get(f"{BASE}/my-clients", headers=coach_headers).json()["data"]
    assert [r["id"] for r in advisors] == [relationship["id"]]
    assert [r["id"] for r in clients] == [relationship["id"]]


def test_only_invited_email_can_accept(client, auth_headers, other_headers):
    invitation = _invite(client, auth_headers)
    response = client.post(f"{BASE}/{invitation['id']}/accept", headers=other_headers)
    assert response.status_code == 403
    assert client.get(f"{BASE}/{invitation['id']}", headers=other_headers).status_code == 403


def test_pending_lists(client, auth_headers, coach_headers):
    invitation = _invite(client, auth_headers)
    assert [r["id"] for r in client.get(f"{BASE}/pending", headers=auth_headers).json()["data"]["sent"]] == [
        invitation["id"]
    ]
    received = client.get(f"{BASE}/pending", headers=coach_headers).json()["data"]["received"]
    assert [r["id"] for r in received] == [invitation["id"]]
    # the invited advisor may look at the invitation before accepting
    assert client.get(f"{BASE}/{invitation['id']}", headers=coach_headers).status_code == 200


def test_expired_invitation(client, db, auth_headers, coach_headers):
    invitation = _invite(client, auth_headers)
    record = db.query(AdvisorRelationship).filter(
        AdvisorRelationship.invitation_token == invitation["invitation_token"]
    ).one()
    record.invitation_expires_at = utc_now() - timedelta(days=1)
    db.commit()

    response = client.post(f"{BASE}/{invitation['id']}/accept", headers=coach_headers)
    assert response.status_code == 400
    status = client.get(f"{BASE}/{invitation['id']}", headers=auth_headers).json()["data"]["status"]
    assert status == "expired"


def test_reject_and_cancel(client, auth_headers, coach_headers):
    first = _invite(client, auth_headers)
    response = client.post(f"{BASE}/{first['id']}/reject", json={"reason": "Fully booked"}, headers=coach_headers)
    assert response.status_code == 200
    rejected = response.json()["data"]
    assert rejected["status"] == "rejected"
    assert rejected["end_reason"] == "Fully booked"

    second = _invite(client, auth_headers)
    response = client.post(f"{BASE}/{second['id']}/cancel", headers=auth_headers)
    assert response.json()["data"]["status"] == "cancelled"
    assert client.post(f"{BASE}/{second['id']}/cancel", headers=auth_headers).status_code == 400


def test_pause_blocks_messaging(client, relationship, auth_headers, coach_headers):
    rel_id = relationship["id"]
    assert client.post(f"{BASE}/{rel_id}/pause", headers=coach_headers).json()["data"]["status"] == "paused"
    response = client.post(f"{BASE}/{rel_id}/messages", json={"content": "Hello?"}, headers=auth_headers)
    assert response.status_code == 400
    assert client.post(f"{BASE}/{rel_id}/resume", headers=auth_headers).json()["data"]["status"] == "accepted"
    assert client.post(f"{BASE}/{rel_id}/messages", json={"content": "Hello?"},
                       headers=auth_headers).status_code == 201


def test_shared_data_respects_flags(client, relationship, auth_headers, coach_headers):
    client.post("/api/jobs", json={
        "title": "Engineer", "company": "Acme", "salary_min": 100000, "salary_max": 130000,
    }, headers=auth_headers)
    url = f"{BASE}/{relationship['id']}/shared-data"

    assert client.get(url, headers=auth_headers).status_code == 403

    shared = client.get(url, headers=coach_headers).json()["data"]
    assert "salary_min" not in shared["applications"][0]
    assert shared["progress"]["total_active"] == 1

    client.put(url, json={"share_salary_info": True, "share_progress": False}, headers=auth_headers)
    shared = client.get(url, headers=coach_headers).json()["data"]
    assert shared["applications"][0]["salary_min"] == 100000
    assert "progress" not in shared


def test_sessions(client, relationship, auth_headers, coach_headers):
    response = client.post(f"{BASE}/sessions", json={
        "relationship_id": relationship["id"],
        "title": "Kickoff",
        "scheduled_at": "2030-03-01T15:00:00Z",
        "duration_minutes": 45,
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    session = response.json()["data"]
    assert session["status"] == "scheduled"
    assert session["scheduled_at"].startswith("2030-03-01T15:00:00")

    client.put(f"{BASE}/sessions/{session['id']}/notes", json={"notes": "Needs portfolio"}, headers=coach_headers)
    assert client.put(f"{BASE}/sessions/{session['id']}/notes", json={"notes": "x"},
                      headers=auth_headers).status_code == 403

    seeker_view = client.get(f"{BASE}/sessions", headers=auth_headers).json()["data"][0]
    advisor_view = client.get(f"{BASE}/sessions", headers=coach_headers).json()["data"][0]
    assert "advisor_notes" not in seeker_view
    assert advisor_view["advisor_notes"] == "Needs portfolio"

    completed = client.put(f"{BASE}/sessions/{session['id']}", json={"status": "completed"},
                           headers=coach_headers).json()["data"]
    assert completed["completed_at"] is not None
    rel = client.get(f"{BASE}/{relationship['id']}", headers=auth_headers).json()["data"]
    assert rel["total_sessions"] == 1
    assert rel["completed_sessions"] == 1


def test_session_duration_bounds(client, relationship, auth_headers):
    response = client.post(f"{BASE}/sessions", json={
        "relationship_id": relationship["id"],
        "title": "Quick sync",
        "scheduled_at": "2030-03-01T15:00:00Z",
        "duration_minutes": 10,
    }, headers=auth_headers)
    assert response.status_code == 400


def test_payments(client, relationship, auth_headers, coach_headers):
    rel_id = relationship["id"]
    assert client.post(f"{BASE}/{rel_id}/payments", json={"amount": 0}, headers=auth_headers).status_code == 400

    client.put(f"{BASE}/{rel_id}/billing", json={"billing_type": "per_session", "session_rate": 150},
               headers=coach_headers)
    response = client.post(f"{BASE}/{rel_id}/payments", json={"amount": 150, "description": "Session 1"},
                           headers=auth_headers)
    assert response.status_code == 201
    payment = response.json()["data"]
    assert payment["status"] == "pending"

    billing = client.get(f"{BASE}/{rel_id}/billing", headers=auth_headers).json()["data"]
    assert billing["total_outstanding"] == 150

    recorded = client.post(f"{BASE}/payments/{payment['id']}/record", headers=coach_headers).json()["data"]
    assert recorded["status"] == "completed"
    billing = client.get(f"{BASE}/{rel_id}/billing", headers=auth_headers).json()["data"]
    assert billing["total_outstanding"] == 0
    assert billing["total_paid"] == 150

    again = client.post(f"{BASE}/payments/{payment['id']}/record", headers=coach_headers)
    assert again.status_code == 400


def test_billing_is_advisor_only(client, relationship, auth_headers):
    response = client.put(f"{BASE}/{relationship['id']}/billing", json={"session_rate": 10}, headers=auth_headers)
    assert response.status_code == 403


def test_recommendations(client, relationship, auth_headers, coach_headers):
    rel_id = relationship["id"]
    response = client.post(f"{BASE}/{rel_id}/recommendations", json={
        "title": "Rewrite summary", "category": "resume",
    }, headers=coach_headers)
    assert response.status_code == 201
    recommendation = response.json()["data"]
    assert recommendation["status"] == "pending"

    url = f"{BASE}/recommendations/{recommendation['id']}"
    assert client.put(url, json={"title": "Mine now"}, headers=auth_headers).status_code == 403

    updated = client.put(url, json={"status": "completed", "client_notes": "Done"},
                         headers=auth_headers).json()["data"]
    assert updated["completed_at"] is not None
    assert updated["client_notes"] == "Done"

    done = client.get(f"{BASE}/{rel_id}/recommendations", params={"status": "completed"},
                      headers=coach_headers).json()["data"]
    assert len(done) == 1


def test_evaluations_and_ratings(client, relationship, auth_headers, coach_headers):
    rel_id = relationship["id"]
    missing = client.post(f"{BASE}/{rel_id}/evaluations", json={"ratings": {"communication": 5}},
                          headers=auth_headers)
    assert missing.status_code == 400
    assert client.post(f"{BASE}/{rel_id}/evaluations", json={"ratings": {"overall": 5}},
                       headers=coach_headers).status_code == 403

    first = client.post(f"{BASE}/{rel_id}/evaluations", json={
        "ratings": {"overall": 4, "communication": 5}, "nps_score": 9,
    }, headers=auth_headers)
    assert first.status_code == 201
    client.post(f"{BASE}/{rel_id}/evaluations", json={"ratings": {"overall": 5}, "nps_score": 10},
                headers=auth_headers)

    ratings = client.get(f"{BASE}/advisors/{relationship['advisor_id']}/ratings",
                         headers=auth_headers).json()["data"]
    assert ratings["average_rating"] == 4.5
    assert ratings["total_reviews"] == 2
    assert ratings["breakdown"]["communication"] == 5.0
    assert ratings["breakdown"]["expertise"] is None
    assert ratings["average_nps"] == 9.5

    evaluation_id = first.json()["data"]["id"]
    assert client.post(f"{BASE}/evaluations/{evaluation_id}/respond", json={"response": "Thanks"},
                       headers=auth_headers).status_code == 403
    answered = client.post(f"{BASE}/evaluations/{evaluation_id}/respond", json={"response": "Thanks"},
                           headers=coach_headers).json()["data"]
    assert answered["advisor_response"] == "Thanks"


def test_pending_relationship_cannot_be_evaluated(client, auth_headers):
    invitation = _invite(client, auth_headers)
    response = client.post(f"{BASE}/{invitation['id']}/evaluations", json={"ratings": {"overall": 5}},
                           headers=auth_headers)
    assert response.status_code == 400


def test_messaging(client, relationship, auth_headers, coach_headers, other_headers):
    url = f"{BASE}/{relationship['id']}/messages"
    assert client.post(url, json={"content": "   "}, headers=auth_headers).status_code == 400
    assert client.post(url, json={"content": "Hi"}, headers=other_headers).status_code == 403

    client.post(url, json={"content": "First"}, headers=auth_headers)
    client.post(url, json={"content": "Second"}, headers=auth_headers)
    unread = client.get(f"{BASE}/messages/unread-count", headers=coach_headers).json()["data"]
    assert unread == {"unread_count": 2}

    page = client.get(url, headers=coach_headers).json()["data"]
    assert [m["content"] for m in page["messages"]] == ["First", "Second"]
    assert page["poll_interval_seconds"] == 5
    assert client.get(f"{BASE}/messages/unread-count", headers=coach_headers).json()["data"]["unread_count"] == 0

    client.post(url, json={"content": "Reply"}, headers=coach_headers)
    newer = client.get(url, params={"since": page["server_time"]}, headers=auth_headers).json()["data"]
    assert [m["content"] for m in newer["messages"]] == ["Reply"]

    latest = client.get(url, params={"limit": 1}, headers=auth_headers).json()["data"]
    assert [m["content"] for m in latest["messages"]] == ["Reply"]
    assert latest["has_more"] is True


def test_paged_read_marks_only_returned_messages(client, relationship, auth_headers, coach_headers):
    url = f"{BASE}/{relationship['id']}/messages"
    for i in range(5):
        client.post(url, json={"content": f"m{i}"}, headers=auth_headers)

    page = client.get(url, params={"limit": 1}, headers=coach_headers).json()["data"]
    assert [m["content"] for m in page["messages"]] == ["m4"]
    unread = client.get(f"{BASE}/messages/unread-count", headers=coach_headers).json()["data"]
    assert unread == {"unread_count": 4}


def test_polling_with_full_page_resumes_from_last_message(client, relationship, auth_headers, coach_headers):
    url = f"{BASE}/{relationship['id']}/messages"
    start = client.get(url, headers=coach_headers).json()["data"]
    for i in range(3):
        client.post(url, json={"content": f"m{i}"}, headers=auth_headers)

    seen = []
    cursor = start["server_time"]
    for _ in range(3):
        poll = client.get(url, params={"since": cursor, "limit": 1}, headers=coach_headers).json()["data"]
        seen.extend(m["content"] for m in poll["messages"])
        cursor = poll["server_time"]
    assert seen == ["m0", "m1", "m2"]
    assert poll["has_more"] is False

    final = client.get(url, params={"since": cursor}, headers=coach_headers).json()["data"]
    assert final["messages"] == []


def test_self_relationship_echoes_messages(client, auth_headers):
    invitation = _invite(client, auth_headers, email="alice@example.com")
    accepted = client.post(f"{BASE}/{invitation['id']}/accept", headers=auth_headers)
    assert accepted.status_code == 200

    url = f"{BASE}/{invitation['id']}/messages"
    client.post(url, json={"content": "Note to self"}, headers=auth_headers)
    messages = client.get(url, headers=auth_headers).json()["data"]["messages"]
    assert [m["content"] for m in messages] == ["Note to self", "Echo: Note to self"]
