"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

# Settings are cached on first import, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENABLE_TRACING"] = "false"
os.environ["SEED_REPORT_TEMPLATES"] = "false"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from jobtrail.core.database import Base, get_db, get_engine, get_session_local
from jobtrail.models.user import UserRole
from jobtrail.services.api_monitoring_service import get_rate_limit_tracker
from jobtrail.services.auth_service import AuthService

DEFAULT_PASSWORD = "password123"


@pytest.fixture(scope="function")
def db() -> Session:
    """Fresh schema and session for each test"""
    import jobtrail.models  # noqa: F401

    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = get_session_local()()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def reset_rate_limit_tracker():
    get_rate_limit_tracker().reset()
    yield
    get_rate_limit_tracker().reset()


@pytest.fixture(scope="function")
def client(db: Session):
    """Test client sharing the test session with every request"""
    from jobtrail.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def register_and_login(client: TestClient, username: str, email: str = None,
                       password: str = DEFAULT_PASSWORD) -> dict:
    """Register an account through the API and return bearer headers"""
    email = email or f"{username}@example.com"
    response = client.post("/api/auth/register", json={
        "username": username,
        "email": email,
        "password": password,
    })
    assert response.status_code == 201, response.text
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    # the jar would otherwise authenticate every later request as this user
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


@pytest.fixture
def auth_headers(client):
    """Signed-in job seeker with a profile"""
    headers = register_and_login(client, "alice")
    response = client.post("/api/users/register", json={"name": "Alice Example"}, headers=headers)
    assert response.status_code == 201, response.text
    return headers


@pytest.fixture
def other_headers(client):
    """A second, unrelated account"""
    return register_and_login(client, "mallory")


@pytest.fixture
def admin_headers(db):
    service = AuthService(db)
    admin = service.register_user("admin", "admin@example.com", DEFAULT_PASSWORD, role=UserRole.ADMIN.value)
    session = service.create_session(admin.id)
    return {"Authorization": f"Bearer {session.token}"}
