import uuid
from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        database_name="wrist_titans_test",
        upload_dir=str(tmp_path),
    )


@pytest.fixture
def app(settings):
    return create_app(settings, client=mongomock.MongoClient())


@pytest.fixture
def client(app):
    """In-process client; entering it runs startup (indexes, admin bootstrap)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    return app.state.db


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}@wristtitans.com"


def future(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def past(days: int = 7) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def register(client, name: str = "Player", email: str = None, password: str = "secret1", **extra):
    body = {"name": name, "email": email or unique_email(), "password": password, "phone": "555-0100"}
    body.update(extra)
    return client.post("/api/auth/register", json=body)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def player(client):
    """A registered user: dict with id, email, token."""
    email = unique_email("player")
    resp = register(client, name="Player One", email=email)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"id": body["user"]["id"], "email": email, "token": body["token"]}


@pytest.fixture
def opponent(client):
    email = unique_email("opponent")
    resp = register(client, name="Opponent", email=email)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"id": body["user"]["id"], "email": email, "token": body["token"]}


@pytest.fixture
def admin(client, db):
    email = unique_email("admin")
    resp = register(client, name="Admin", email=email)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    db["user"].update_one({"email": email}, {"$set": {"role": "admin"}})
    return {"id": body["user"]["id"], "email": email, "token": body["token"]}


def create_event(client, admin_token: str, **fields):
    body = {
        "title": "City Open",
        "description": "Open arm-wrestling tournament",
        "date": future(),
        "venue": "Main Hall",
    }
    body.update(fields)
    resp = client.post("/api/admin/events", json=body, headers=auth(admin_token))
    assert resp.status_code == 201, resp.text
    return resp.json()["event"]
