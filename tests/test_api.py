import logging
from datetime import datetime, timedelta, timezone

from bson import ObjectId

from main import app, get_db

NOW = datetime.now(timezone.utc)


def _create(client, headers, **overrides):
    payload = {"title": "Hello", "language": "python", "code": "print('hi')", "description": "  "}
    payload.update(overrides)
    return client.post("/api/snippets", json=payload, headers=headers)


def test_root(client):
    assert client.get("/").json() == {"message": "SnipShare API running"}


def test_session_roundtrip(client, alice):
    headers, user_id = alice
    assert client.get("/api/auth/session", headers=headers).json()["user"]["id"] == user_id
    assert client.get("/api/auth/session").json() is None

    assert client.post("/api/auth/logout", headers=headers).status_code == 204
    assert client.get("/api/auth/session", headers=headers).json() is None


def test_login_errors_are_inline(client, alice):
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid login credentials"

    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "hunter22"})
    assert response.status_code == 200
    assert response.json()["access_token"]


def test_create_requires_login(client):
    response = _create(client, {})
    assert response.status_code == 401
    assert response.json()["detail"] == "You must be logged in to create a snippet"


def test_create_requires_title_and_code(client, alice):
    headers, _ = alice
    response = _create(client, headers, code="   ")
    assert response.status_code == 400
    assert response.json()["detail"] == "Title and code are required"


def test_create_trims_and_nulls_blank_description(client, alice):
    headers, user_id = alice
    response = _create(client, headers, title="  Spaced  ")
    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Spaced"
    assert body["description"] is None
    assert body["user_id"] == user_id
    assert body["likes_count"] == 0


def test_feed_order_trending_and_filters(client, make_snippet, db):
    first = make_snippet("u1", title="Binary search", language="python", created_at=NOW - timedelta(hours=3))
    make_snippet("u2", title="Debounce", language="javascript", created_at=NOW - timedelta(hours=1))
    make_snippet("u2", title="Fizz", language="python", code="for i in range(3): pass", created_at=NOW)
    db["likes"].insert_many([
        {"snippet_id": first, "user_id": "u2", "created_at": NOW},
        {"snippet_id": first, "user_id": "u3", "created_at": NOW},
    ])

    body = client.get("/api/snippets").json()
    assert [i["title"] for i in body["items"]] == ["Fizz", "Debounce", "Binary search"]
    assert body["trending"][0]["title"] == "Binary search"
    assert body["trending"][0]["like_count"] == 2
    assert body["stats"]["total_likes"] == 2
    assert body["stats"]["total_users"] == 2

    python_only = client.get("/api/snippets", params={"category": "python"}).json()["items"]
    assert [i["title"] for i in python_only] == ["Fizz", "Binary search"]

    search = client.get("/api/snippets", params={"q": "RANGE"}).json()["items"]
    assert [i["title"] for i in search] == ["Fizz"]


def test_detail_counts_and_liked_flag(client, alice, bob):
    alice_headers, _ = alice
    bob_headers, _ = bob
    snippet_id = _create(client, alice_headers).json()["id"]

    client.post(f"/api/snippets/{snippet_id}/like", headers=bob_headers)
    client.post(f"/api/snippets/{snippet_id}/comments", json={"content": "neat"}, headers=bob_headers)

    as_bob = client.get(f"/api/snippets/{snippet_id}", headers=bob_headers).json()
    assert as_bob["like_count"] == 1
    assert as_bob["liked"] is True
    assert as_bob["comment_count"] == 1
    assert as_bob["author"].startswith("user_")

    anonymous = client.get(f"/api/snippets/{snippet_id}").json()
    assert anonymous["liked"] is False


def test_detail_errors(client):
    assert client.get("/api/snippets/not-an-id").json()["detail"] == "Invalid id"
    response = client.get(f"/api/snippets/{ObjectId()}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Snippet not found"


def test_like_toggle_endpoint(client, alice, bob):
    snippet_id = _create(client, alice[0]).json()["id"]
    bob_headers, _ = bob

    liked = client.post(f"/api/snippets/{snippet_id}/like", headers=bob_headers).json()
    assert liked == {"snippet_id": snippet_id, "liked": True, "like_count": 1}

    unliked = client.post(f"/api/snippets/{snippet_id}/like", headers=bob_headers).json()
    assert unliked == {"snippet_id": snippet_id, "liked": False, "like_count": 0}


def test_like_requires_login(client, alice):
    snippet_id = _create(client, alice[0]).json()["id"]
    response = client.post(f"/api/snippets/{snippet_id}/like")
    assert response.status_code == 401


def test_comment_endpoint(client, alice, bob):
    snippet_id = _create(client, alice[0]).json()["id"]
    bob_headers, _ = bob

    response = client.post(f"/api/snippets/{snippet_id}/comments", json={"content": "   "}, headers=bob_headers)
    assert response.status_code == 400
    assert client.get(f"/api/snippets/{snippet_id}/comments").json() == []

    response = client.post(f"/api/snippets/{snippet_id}/comments", json={"content": " first "}, headers=bob_headers)
    assert response.status_code == 201
    assert [c["content"] for c in response.json()] == ["first"]

    response = client.post(f"/api/snippets/{snippet_id}/comments", json={"content": "hi"})
    assert response.status_code == 401
    assert response.json()["detail"] == "You must be logged in to comment"


def test_only_owner_can_edit_or_delete(client, alice, bob):
    snippet_id = _create(client, alice[0]).json()["id"]
    update = {"title": "Mine now", "language": "go", "code": "package main"}

    response = client.put(f"/api/snippets/{snippet_id}", json=update, headers=bob[0])
    assert response.status_code == 403
    assert response.json()["detail"] == "You can only edit your own snippets"
    assert client.delete(f"/api/snippets/{snippet_id}", headers=bob[0]).status_code == 403

    response = client.put(f"/api/snippets/{snippet_id}", json=update, headers=alice[0])
    assert response.status_code == 200
    assert response.json()["title"] == "Mine now"
    assert response.json()["language"] == "go"


def test_delete_removes_likes_and_comments(client, db, alice, bob):
    snippet_id = _create(client, alice[0]).json()["id"]
    client.post(f"/api/snippets/{snippet_id}/like", headers=bob[0])
    client.post(f"/api/snippets/{snippet_id}/comments", json={"content": "bye"}, headers=bob[0])

    assert client.delete(f"/api/snippets/{snippet_id}", headers=alice[0]).status_code == 204
    assert client.get(f"/api/snippets/{snippet_id}").status_code == 404
    assert db["likes"].count_documents({"snippet_id": snippet_id}) == 0
    assert db["comments"].count_documents({"snippet_id": snippet_id}) == 0


def test_dashboard_requires_login(client):
    assert client.get("/api/dashboard").status_code == 401


def test_dashboard_for_new_user_uses_placeholder(client, alice):
    body = client.get("/api/dashboard", headers=alice[0]).json()
    assert body["snippets"] == []
    assert len(body["language_data"]) == 10
    assert body["language_data"][0] == {"language": "JavaScript", "count": 5}


def test_dashboard_counts_own_snippets(client, alice, bob):
    snippet_id = _create(client, alice[0]).json()["id"]
    _create(client, bob[0], title="Bob's")
    client.post(f"/api/snippets/{snippet_id}/like", headers=bob[0])
    client.post(f"/api/snippets/{snippet_id}/comments", json={"content": "cool"}, headers=bob[0])

    body = client.get("/api/dashboard", headers=alice[0]).json()
    assert [s["id"] for s in body["snippets"]] == [snippet_id]
    assert body["snippets"][0]["likes_count"] == 1
    assert body["snippets"][0]["comments_count"] == 1
    assert body["language_data"] == [{"language": "python", "count": 1}]
    assert body["liked_snippet_ids"] == []

    bob_view = client.get("/api/dashboard", headers=bob[0]).json()
    assert bob_view["liked_snippet_ids"] == [snippet_id]


def test_languages(client):
    assert "python" in client.get("/api/languages").json()


def test_comment_requires_existing_snippet(client, db, bob):
    missing = str(ObjectId())
    response = client.post(f"/api/snippets/{missing}/comments", json={"content": "hi"}, headers=bob[0])
    assert response.status_code == 404
    assert response.json()["detail"] == "Snippet not found"
    assert db["comments"].count_documents({"snippet_id": missing}) == 0

    response = client.post("/api/snippets/not-an-id/comments", json={"content": "hi"}, headers=bob[0])
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid id"
    assert db["comments"].count_documents({}) == 0


class _FailingCollection:
    def __init__(self, collection, method):
        self._collection = collection
        self._method = method

    def __getattr__(self, name):
        if name == self._method:
            def fail(*args, **kwargs):
                raise RuntimeError("write rejected")
            return fail
        return getattr(self._collection, name)


class _FailingDB:
    def __init__(self, db, collection, method):
        self._db = db
        self._collection = collection
        self._method = method

    def __getitem__(self, name):
        if name == self._collection:
            return _FailingCollection(self._db[name], self._method)
        return self._db[name]


def test_comment_store_failure_is_reported(client, db, alice, bob, caplog):
    snippet_id = _create(client, alice[0]).json()["id"]
    app.dependency_overrides[get_db] = lambda: _FailingDB(db, "comments", "insert_one")

    with caplog.at_level(logging.ERROR):
        response = client.post(f"/api/snippets/{snippet_id}/comments", json={"content": "hi"}, headers=bob[0])
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to add comment"
    assert "Error adding comment" in caplog.text


def test_delete_store_failure_is_reported(client, db, alice, caplog):
    snippet_id = _create(client, alice[0]).json()["id"]
    app.dependency_overrides[get_db] = lambda: _FailingDB(db, "likes", "delete_many")

    with caplog.at_level(logging.ERROR):
        response = client.delete(f"/api/snippets/{snippet_id}", headers=alice[0])
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to delete snippet"
    assert "Error deleting snippet" in caplog.text
