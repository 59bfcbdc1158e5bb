import pytest

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import AuditEvent, Base
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
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client):
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "pw"})
    return {"X-CSRF-Token": r.json["csrf_token"]}


MESSAGE = {
    "name": "Dana",
    "email": "Dana@Example.com ",
    "company": "Acme",
    "subject": "Pricing",
    "message": "Could you send over your pricing for a team of ten?",
}


def test_anonymous_submission(client):
    r = client.post("/contact", json=MESSAGE)
    assert r.status_code == 201
    assert r.json["success"] is True
    assert r.json["id"]

    r = client.post("/contact", data={**MESSAGE, "email": "not-an-email", "message": "short"})
    assert r.status_code == 400
    fields = {e.split(":")[0] for e in r.json["errors"]}
    assert fields == {"email", "message"}


def test_inbox_requires_permission(client):
    assert client.get("/contact/messages").status_code == 401


def test_triage_inbox(client, app):
    client.post("/contact", json=MESSAGE)
    client.post("/contact", json={**MESSAGE, "subject": "Partnership"})
    headers = _login(client)

    r = client.get("/contact/messages")
    assert r.json["total"] == 2
    msg = r.json["messages"][0]
    assert msg["email"] == "dana@example.com"
    assert msg["status"] == "new"

    r = client.post(f"/contact/messages/{msg['id']}/status", json={"status": "replied", "notes": "Sent deck"}, headers=headers)
    assert r.json["message"]["status"] == "replied"
    assert r.json["message"]["notes"] == "Sent deck"
    assert "/admin/contacts" in r.headers["X-Revalidate-Paths"]

    assert client.post(f"/contact/messages/{msg['id']}/status", json={"status": "spam"}, headers=headers).status_code == 400
    assert client.get("/contact/messages?status=new").json["total"] == 1

    assert client.post(f"/contact/messages/{msg['id']}/delete", headers=headers).status_code == 200
    assert client.post(f"/contact/messages/{msg['id']}/delete", headers=headers).status_code == 404
    with session_scope(app) as s:
        actions = {a for (a,) in s.query(AuditEvent.action).all()}
    assert {"contact_message.create", "contact_message.status", "contact_message.delete"} <= actions
