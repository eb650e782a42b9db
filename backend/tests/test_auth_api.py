"""
Tests for registration, login, sessions and account deactivation
"""
from conftest import register_and_login

from jobtrail.core.auth import SESSION_COOKIE
from jobtrail.core.responses import ErrorCode


def test_register_and_login_returns_envelope(client):
    """Login answers with the envelope and sets the session cookie"""
    client.post("/api/auth/register", json={
        "username": "carol", "email": "carol@example.com", "password": "password123",
    })
    response = client.post("/api/auth/login", json={"username": "carol", "password": "password123"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["username"] == "carol"
    assert "timestamp" in body
    assert SESSION_COOKIE in response.cookies


def test_login_with_email(client):
    register_and_login(client, "dave", "Dave@Example.com")
    response = client.post("/api/auth/login", json={"username": "dave@example.com", "password": "password123"})
    assert response.status_code == 200


def test_duplicate_username_conflicts(client):
    register_and_login(client, "erin")
    response = client.post("/api/auth/register", json={
        "username": "erin", "email": "other@example.com", "password": "password123",
    })
    assert response.status_code == 409
    assert response.json()["error_code"] == ErrorCode.ALREADY_EXISTS


def test_short_password_is_validation_error(client):
    response = client.post("/api/auth/register", json={
        "username": "frank", "email": "frank@example.com", "password": "short",
    })
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == ErrorCode.VALIDATION_ERROR
    assert any(error["field"] == "password" for error in body["errors"])


def test_bad_password_is_unauthorized(client):
    register_and_login(client, "grace")
    response = client.post("/api/auth/login", json={"username": "grace", "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_requires_authentication(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error_code"] == ErrorCode.UNAUTHORIZED
    assert response.headers["www-authenticate"] == "Bearer"


def test_me_with_bearer_token(client):
    headers = register_and_login(client, "heidi")
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "heidi@example.com"


def test_logout_invalidates_session(client):
    headers = register_and_login(client, "ivan")
    assert client.post("/api/auth/logout", headers=headers).status_code == 204
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_deactivated_account_gets_forbidden(client):
    """Deleting the account keeps the session only to answer 403"""
    headers = register_and_login(client, "judy")
    assert client.delete("/api/users/me", headers=headers).status_code == 200
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == ErrorCode.FORBIDDEN

    login = client.post("/api/auth/login", json={"username": "judy", "password": "password123"})
    assert login.status_code == 401


def test_cleanup_expired_sessions(db):
    from datetime import timedelta

    from jobtrail.models.user import AuthSession
    from jobtrail.services.auth_service import AuthService
    from jobtrail.utils.datetime_utils import utc_now

    service = AuthService(db)
    user = service.register_user("oscar", "oscar@example.com", "password123")
    live = service.create_session(user.id)
    stale = service.create_session(user.id)
    stale.expires_at = utc_now() - timedelta(hours=1)
    db.commit()

    assert service.cleanup_expired_sessions() == 1
    tokens = [s.token for s in db.query(AuthSession).all()]
    assert tokens == [live.token]


def test_session_cookie_authenticates(client):
    register_and_login(client, "peggy")
    assert client.get("/api/auth/me").status_code == 401

    client.post("/api/auth/login", json={"username": "peggy", "password": "password123"})
    response = client.get("/api/auth/me")
    assert response.status_code == 200
    assert response.json()["data"]["username"] == "peggy"
