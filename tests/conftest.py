import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from mongita import MongitaClientMemory

from database import SNIPPETS, create_document
from main import app, get_db


@pytest.fixture
def db():
    client = MongitaClientMemory()
    name = f"snipshare_test_{uuid.uuid4().hex}"
    return client[name]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _signup(client, email):
    response = client.post(
        "/api/auth/signup",
        json={"email": email, "password": "hunter22", "confirm_password": "hunter22"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]["id"]


@pytest.fixture
def alice(client):
    return _signup(client, "alice@example.com")


@pytest.fixture
def bob(client):
    return _signup(client, "bob@example.com")


def _insert_snippet(db, user_id, title="snippet", language="python", code="print(1)", created_at=None, **extra):
    data = {
        "title": title,
        "language": language,
        "code": code,
        "description": extra.pop("description", None),
        "user_id": user_id,
        "likes_count": extra.pop("likes_count", 0),
        "created_at": created_at or datetime.now(timezone.utc),
    }
    data.update(extra)
    return create_document(SNIPPETS, data, target=db)


@pytest.fixture
def make_snippet(db):
    def make(user_id, **kwargs):
        return _insert_snippet(db, user_id, **kwargs)
    return make
