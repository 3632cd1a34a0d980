import os

# must be set before gestionmatos reads its settings
os.environ.setdefault("secret_key", "test_secret")
os.environ.setdefault("access_token_expire_minutes", "120")
os.environ["database_url"] = "sqlite://"
os.environ["rate_limit_requests"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine
from sqlalchemy.pool import StaticPool

from gestionmatos.main import app
from gestionmatos.db import get_session, create_db_and_tables


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register an account; returns (auth headers, user json)."""

    def _register(username: str, password: str = "secret1", email: str | None = None):
        r = client.post(
            "/auth/register",
            json={"username": username, "email": email or f"{username}@example.com", "password": password},
        )
        assert r.status_code == 201, r.text
        data = r.json()
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]

    return _register


@pytest.fixture
def admin(register):
    # first account on a fresh database is the admin
    return register("root")


@pytest.fixture
def manager(client, admin, register):
    headers, user = register("mgr")
    r = client.put(f"/users/{user['id']}/role", json={"role": "manager"}, headers=admin[0])
    assert r.status_code == 200, r.text
    return headers, r.json()


@pytest.fixture
def member(admin, register):
    return register("alice")


@pytest.fixture
def material(client, admin):
    r = client.post("/materials", json={"name": "Caméra GoPro", "category": "Audiovisuel"}, headers=admin[0])
    assert r.status_code == 201, r.text
    return r.json()
