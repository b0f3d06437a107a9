from pathlib import Path
import os
import pytest

# Point the app at a throwaway SQLite file before `scheduleme` is imported.
TEST_DB = Path(__file__).resolve().parents[1] / "test_scheduleme.db"
if TEST_DB.exists():
    TEST_DB.unlink()
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"
os.environ["DEFAULT_ADMIN_EMAIL"] = "admin@example.com"
os.environ["DEFAULT_ADMIN_PASSWORD"] = "admin-pass"
os.environ["LOGIN_RATE_LIMIT_PER_MIN"] = "1000"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel, Session, create_engine  # noqa: E402
from scheduleme.main import app  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"


def _bearer(client, email, password):
    r = client.post('/auth/login', json={'email': email, 'password': password})
    assert r.status_code == 200, r.text
    return {'Authorization': f"Bearer {r.json()['access_token']}"}


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture(scope="session")
def admin_headers(client):
    return _bearer(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture(scope="session")
def viewer_headers(client, admin_headers):
    r = client.post('/api/users', json={'email': 'viewer@example.com', 'role': 'viewer', 'password': 'viewer-pass'}, headers=admin_headers)
    assert r.status_code == 200, r.text
    return _bearer(client, 'viewer@example.com', 'viewer-pass')


@pytest.fixture
def session(tmp_path):
    """An isolated database session for service-level tests."""
    engine = create_engine(f"sqlite:///{tmp_path / 'services.db'}")
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
