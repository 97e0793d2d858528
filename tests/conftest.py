import pytest
from fastapi.testclient import TestClient

from taskboard.config import Settings
from taskboard.db import Database
from taskboard.main import create_app
from taskboard.storage import Storage


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'taskboard.db'}",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def signup(client):
    """Register and log in a user, returning auth headers."""

    def _signup(email="a@x.com", password="p", name="A"):
        r = client.post("/user/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 200, r.text
        r = client.post("/user/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['token']}"}

    return _signup


@pytest.fixture
def headers(signup):
    return signup()


@pytest.fixture
def storage(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'storage.db'}")
    database.init()
    session = database.session_factory()
    try:
        yield Storage(session)
    finally:
        session.close()
        database.dispose()
