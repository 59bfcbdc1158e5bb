import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import Base, Role, User
from app.aigency.modules.messages.models import ConsultationMessage
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
        roles = {r.key: r for r in s.query(Role).all()}
        for email, role_key in (
            ("client@example.com", "client"),
            ("other@example.com", "client"),
            ("consultant@example.com", "consultant"),
        ):
            u = User(email=email, password_hash=generate_password_hash("pw"), first_name=email.split("@")[0].title(), last_name="X", is_active=True)
            u.roles.append(roles[role_key])
            s.add(u)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    client.post("/auth/logout")
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _user_id(app, email):
    with session_scope(app) as s:
        return s.query(User).filter(User.email == email).one().id


def _open_room(client, app, subject="Automate invoicing"):
    """Client requests a consultation and the admin assigns the consultant."""
    headers = _login(client, "client@example.com")
    r = client.post(
        "/consultations",
        json={
            "subject": subject,
            "description": "We spend two days a month reconciling invoices by hand.",
            "consultation_type": "implementation",
        },
        headers=headers,
    )
    cid = r.json["consultation"]["id"]
    headers = _login(client)
    consultant_id = _user_id(app, "consultant@example.com")
    client.post(f"/consultations/{cid}/assign", json={"consultant_id": consultant_id}, headers=headers)
    return cid


def _send(client, headers, cid, content, **fields):
    return client.post(f"/consultations/{cid}/messages", json={"content": content, **fields}, headers=headers)


def test_only_participants_can_message(client, app):
    cid = _open_room(client, app)
    assert client.get(f"/consultations/{cid}/messages").status_code == 200  # admin

    headers = _login(client, "client@example.com")
    r = _send(client, headers, cid, "Hello, when can we start?")
    assert r.status_code == 201
    assert r.json["message"]["message_type"] == "text"
    assert r.json["message"]["sender_email"] == "client@example.com"
    assert r.headers["X-Revalidate-Paths"] == f"/consultation/room/{cid}"

    assert _send(client, headers, cid, "").status_code == 400
    assert _send(client, headers, cid, "x" * 10001).status_code == 400
    assert _send(client, headers, cid, "hi", message_type="carrier_pigeon").status_code == 400
    assert _send(client, headers, 999, "hi").status_code == 404

    headers = _login(client, "consultant@example.com")
    r = _send(client, headers, cid, "print('hi')", message_type="code_snippet", metadata={"language": "python"})
    assert r.status_code == 201
    assert r.json["message"]["metadata"] == {"language": "python"}

    headers = _login(client, "other@example.com")
    assert _send(client, headers, cid, "Let me in").status_code == 403
    assert client.get(f"/consultations/{cid}/messages").status_code == 403

    client.post("/auth/logout")
    assert client.get(f"/consultations/{cid}/messages").status_code == 401


def test_pages_walk_backwards_from_newest(client, app):
    cid = _open_room(client, app)
    headers = _login(client, "client@example.com")
    for i in range(5):
        _send(client, headers, cid, f"m{i}")

    r = client.get(f"/consultations/{cid}/messages?limit=2")
    assert [m["content"] for m in r.json["messages"]] == ["m3", "m4"]
    assert r.json["has_more"] is True

    oldest = r.json["messages"][0]["id"]
    r = client.get(f"/consultations/{cid}/messages?limit=2&before_id={oldest}")
    assert [m["content"] for m in r.json["messages"]] == ["m1", "m2"]
    assert r.json["has_more"] is True

    oldest = r.json["messages"][0]["id"]
    r = client.get(f"/consultations/{cid}/messages?limit=2&before_id={oldest}")
    assert [m["content"] for m in r.json["messages"]] == ["m0"]
    assert r.json["has_more"] is False

    assert len(client.get(f"/consultations/{cid}/messages?limit=500").json["messages"]) == 5


def test_unread_counts_only_other_senders(client, app):
    cid = _open_room(client, app)
    headers = _login(client, "client@example.com")
    first = _send(client, headers, cid, "one").json["message"]["id"]
    _send(client, headers, cid, "two")
    assert client.get(f"/consultations/{cid}/messages/unread-count").json["count"] == 0
    # own messages are never marked
    assert client.post(f"/consultations/{cid}/messages/read", json={}, headers=headers).json["marked"] == 0

    headers = _login(client, "consultant@example.com")
    assert client.get(f"/consultations/{cid}/messages/unread-count").json["count"] == 2

    r = client.post(f"/consultations/{cid}/messages/read", json={"message_ids": [first]}, headers=headers)
    assert r.json["marked"] == 1
    assert client.get(f"/consultations/{cid}/messages/unread-count").json["count"] == 1

    r = client.post(f"/consultations/{cid}/messages/read", json={}, headers=headers)
    assert r.json["marked"] == 1
    assert client.get(f"/consultations/{cid}/messages/unread-count").json["count"] == 0

    messages = client.get(f"/consultations/{cid}/messages").json["messages"]
    assert all(m["is_read"] and m["read_at"] for m in messages)


def test_delete_own_message_or_as_admin(client, app):
    cid = _open_room(client, app)
    headers = _login(client, "client@example.com")
    mine = _send(client, headers, cid, "typo").json["message"]["id"]
    kept = _send(client, headers, cid, "keep me").json["message"]["id"]

    headers = _login(client, "consultant@example.com")
    r = client.post(f"/consultations/messages/{mine}/delete", headers=headers)
    assert r.status_code == 403
    assert r.json["error"] == "Can only delete your own messages."
    theirs = _send(client, headers, cid, "noted").json["message"]["id"]

    headers = _login(client, "client@example.com")
    assert client.post(f"/consultations/messages/{mine}/delete", headers=headers).status_code == 200
    assert client.post(f"/consultations/messages/{mine}/delete", headers=headers).status_code == 404

    headers = _login(client)
    assert client.post(f"/consultations/messages/{theirs}/delete", headers=headers).status_code == 200
    remaining = client.get(f"/consultations/{cid}/messages").json["messages"]
    assert [m["id"] for m in remaining] == [kept]


def test_history_and_personal_stats(client, app):
    quiet = _open_room(client, app, subject="Train the sales team")
    busy = _open_room(client, app, subject="Automate invoicing")

    headers = _login(client, "consultant@example.com")
    _send(client, headers, busy, "Can you share last month's invoices?")
    _send(client, headers, busy, "And the ERP export?")
    headers = _login(client, "client@example.com")
    _send(client, headers, busy, "Sure, attaching now.")
    _send(client, headers, quiet, "Any update?")

    r = client.get("/consultations/history")
    assert r.json["total"] == 2
    by_id = {c["id"]: c for c in r.json["consultations"]}
    assert by_id[busy]["message_count"] == 3
    assert by_id[busy]["unread_count"] == 2
    assert by_id[busy]["last_message_at"]
    assert by_id[busy]["consultant"]["email"] == "consultant@example.com"
    assert by_id[quiet]["unread_count"] == 0
    # the last message went to the quiet one
    assert r.json["consultations"][0]["id"] == quiet

    assert client.get("/consultations/history?status=completed").json["total"] == 0
    assert client.get("/consultations/history?limit=1").json["consultations"][0]["id"] == quiet

    stats = client.get("/consultations/my-stats").json["stats"]
    assert stats == {
        "total_consultations": 2,
        "active_consultations": 2,
        "completed_consultations": 0,
        "total_messages": 4,
        "unread_messages": 2,
    }

    _login(client, "other@example.com")
    assert client.get("/consultations/history").json["total"] == 0
    assert client.get("/consultations/my-stats").json["stats"]["total_messages"] == 0


def test_deleting_consultation_removes_its_messages(client, app):
    cid = _open_room(client, app)
    headers = _login(client, "client@example.com")
    _send(client, headers, cid, "hello")

    headers = _login(client)
    assert client.post(f"/consultations/{cid}/delete", headers=headers).status_code == 200
    with session_scope(app) as s:
        assert s.query(ConsultationMessage).count() == 0
