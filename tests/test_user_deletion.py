import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from gestionmatos.db import create_db_and_tables
from gestionmatos.models import Movement


@pytest.fixture
def engine():
    # shared fixture, but with foreign keys enforced like PostgreSQL does
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    create_db_and_tables(engine)
    yield engine
    engine.dispose()


def test_foreign_keys_are_enforced(session):
    session.add(Movement(material_id=1, user_id=42, movement_type="out"))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_delete_borrower_keeps_history(client, admin, member, material):
    h = admin[0]
    mid, uid = material["id"], member[1]["id"]
    assert client.post("/movements/checkout", json={"material_id": mid, "user_id": uid}, headers=h).status_code == 201
    assert client.post("/movements/checkin", json={"material_id": mid, "user_id": uid}, headers=h).status_code == 201

    r = client.delete(f"/users/{uid}", headers=h)
    assert r.status_code == 200

    history = client.get(f"/movements/material/{mid}/history", headers=h).json()
    assert len(history) == 2
    assert {m["user_id"] for m in history} == {None}
    assert {m["user_username"] for m in history} == {None}
    assert {m["processed_by_username"] for m in history} == {"root"}
    assert client.get(f"/materials/{mid}", headers=h).json()["status"] == "available"


def test_delete_manager_who_created_and_processed(client, admin, manager, member):
    mh = manager[0]
    r = client.post("/materials", json={"name": "Tente 4 places", "category": "Sport"}, headers=mh)
    assert r.status_code == 201
    mid = r.json()["id"]
    uid = member[1]["id"]
    client.post("/movements/checkout", json={"material_id": mid, "user_id": uid}, headers=mh)

    r = client.delete(f"/users/{manager[1]['id']}", headers=admin[0])
    assert r.status_code == 200

    detail = client.get(f"/materials/{mid}", headers=admin[0]).json()
    assert detail["created_by"] is None
    assert detail["created_by_username"] is None
    history = client.get(f"/movements/user/{uid}/history", headers=admin[0]).json()
    assert history[0]["processed_by"] is None
    assert history[0]["user_username"] == "alice"
