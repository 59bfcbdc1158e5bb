import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import Base, User
from scripts.init_db import seed


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    _login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        seed(s, admin_email="admin@example.com", admin_password="pw")
        for email in ("member@example.com", "friend@example.com"):
            s.add(User(email=email, password_hash=generate_password_hash("pw"), first_name=email.split("@")[0].title(), is_active=True))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    client.post("/auth/logout")
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _post(client, headers, content, **fields):
    return client.post("/board-room/posts", json={"content": content, **fields}, headers=headers)


def test_posting_and_announcements(client):
    assert client.get("/board-room/posts").status_code == 401

    headers = _login(client, "member@example.com")
    r = _post(client, headers, "Anyone automating expense reports?", content_type="question")
    assert r.status_code == 201
    assert r.json["post"]["thread_depth"] == 0
    assert r.json["post"]["author_name"] == "Member"
    assert r.headers["X-Revalidate-Paths"] == "/board-room"

    assert _post(client, headers, "").status_code == 400
    assert _post(client, headers, "x" * 2001).status_code == 400
    assert _post(client, headers, "hi", content_type="rant").status_code == 400
    r = _post(client, headers, "Free lunch!", content_type="announcement")
    assert r.status_code == 403
    assert r.json["error"] == "Only admins can create announcements."

    headers = _login(client)
    assert _post(client, headers, "Office hours on Friday", content_type="announcement").status_code == 201


def test_reply_threads_keep_counts(client):
    headers = _login(client, "member@example.com")
    root = _post(client, headers, "Which OCR tool do you use?").json["post"]["id"]

    headers = _login(client, "friend@example.com")
    first = _post(client, headers, "We use the built-in one.", reply_to_id=root).json["post"]
    assert first["thread_depth"] == 1
    nested = _post(client, headers, "Actually, both.", reply_to_id=first["id"]).json["post"]
    assert nested["thread_depth"] == 2
    second = _post(client, headers, "Also curious.", reply_to_id=root).json["post"]["id"]
    assert _post(client, headers, "Lost", reply_to_id=999).status_code == 404

    feed = client.get("/board-room/posts").json["posts"]
    assert [p["id"] for p in feed] == [root]
    assert feed[0]["reply_count"] == 2
    assert len(client.get("/board-room/posts?include_replies=true").json["posts"]) == 4

    replies = client.get(f"/board-room/posts/{root}/replies").json["replies"]
    assert [r["id"] for r in replies] == [first["id"], second]

    # removing a reply takes its own replies with it
    assert client.post(f"/board-room/posts/{first['id']}/delete", headers=headers).status_code == 200
    assert client.get("/board-room/posts").json["posts"][0]["reply_count"] == 1
    assert client.get(f"/board-room/posts/{nested['id']}/replies").status_code == 404


def test_like_toggles_per_user(client):
    headers = _login(client, "member@example.com")
    pid = _post(client, headers, "Tip: batch your prompts.", content_type="tip").json["post"]["id"]

    headers = _login(client, "friend@example.com")
    r = client.post(f"/board-room/posts/{pid}/like", headers=headers)
    assert r.json == {"success": True, "liked": True, "like_count": 1}
    assert client.get("/board-room/posts").json["posts"][0]["user_has_liked"] is True
    assert client.post("/board-room/posts/999/like", headers=headers).status_code == 404

    _login(client, "member@example.com")
    post = client.get("/board-room/posts").json["posts"][0]
    assert post["like_count"] == 1 and post["user_has_liked"] is False

    headers = _login(client, "friend@example.com")
    r = client.post(f"/board-room/posts/{pid}/like", headers=headers)
    assert r.json == {"success": True, "liked": False, "like_count": 0}


def test_delete_own_post_or_as_moderator(client):
    headers = _login(client, "member@example.com")
    mine = _post(client, headers, "First!").json["post"]["id"]
    other = _post(client, headers, "Second").json["post"]["id"]

    headers = _login(client, "friend@example.com")
    r = client.post(f"/board-room/posts/{mine}/delete", headers=headers)
    assert r.status_code == 403
    assert r.json["error"] == "Can only delete your own posts."

    headers = _login(client, "member@example.com")
    assert client.post(f"/board-room/posts/{mine}/delete", headers=headers).status_code == 200
    headers = _login(client)
    assert client.post(f"/board-room/posts/{other}/delete", headers=headers).status_code == 200
    assert client.get("/board-room/posts").json["posts"] == []


def test_pin_and_hide_are_moderated(client):
    headers = _login(client, "member@example.com")
    old = _post(client, headers, "House rules draft").json["post"]["id"]
    spam = _post(client, headers, "Buy followers cheap").json["post"]["id"]
    assert client.post(f"/board-room/posts/{old}/pin", headers=headers).status_code == 403
    assert client.post(f"/board-room/posts/{spam}/hide", json={"reason": "spam"}, headers=headers).status_code == 403

    headers = _login(client)
    r = client.post(f"/board-room/posts/{old}/pin", headers=headers)
    assert r.json["post"]["is_pinned"] is True
    assert [p["id"] for p in client.get("/board-room/posts").json["posts"]] == [old, spam]
    assert [p["id"] for p in client.get("/board-room/posts/pinned").json["posts"]] == [old]

    assert client.post(f"/board-room/posts/{spam}/hide", json={}, headers=headers).status_code == 400
    r = client.post(f"/board-room/posts/{spam}/hide", json={"reason": "spam"}, headers=headers)
    assert r.json["post"]["is_hidden"] is True
    assert r.json["post"]["hidden_reason"] == "spam"
    assert [p["id"] for p in client.get("/board-room/posts").json["posts"]] == [old]
    assert client.get(f"/board-room/posts/{spam}/replies").status_code == 200

    _login(client, "member@example.com")
    assert client.get(f"/board-room/posts/{spam}/replies").status_code == 404

    headers = _login(client)
    assert client.post(f"/board-room/posts/{old}/pin", headers=headers).json["post"]["is_pinned"] is False
    assert client.get("/board-room/posts/pinned").json["posts"] == []


def test_feed_pages(client):
    headers = _login(client, "member@example.com")
    for i in range(3):
        _post(client, headers, f"post {i}")

    r = client.get("/board-room/posts?limit=2")
    assert [p["content"] for p in r.json["posts"]] == ["post 2", "post 1"]
    assert r.json["has_more"] is True
    r = client.get("/board-room/posts?limit=2&offset=2")
    assert [p["content"] for p in r.json["posts"]] == ["post 0"]
    assert r.json["has_more"] is False
