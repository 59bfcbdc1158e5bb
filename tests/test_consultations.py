import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import Base, Role, User
from app.aigency.modules.consultations.service import count_breakdown, priority_score
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


def _request(client, headers, **overrides):
    body = {
        "subject": "Automate invoicing",
        "description": "We spend two days a month reconciling invoices by hand.",
        "consultation_type": "implementation",
        "urgency": "high",
        "industry": "Logistics",
    }
    body.update(overrides)
    return client.post("/consultations", json=body, headers=headers)


def test_priority_score():
    assert priority_score("low", "other") == 1
    assert priority_score("medium", "training") == 2
    assert priority_score("high", "implementation") == 4
    assert priority_score("critical", "strategy") == 6


def test_breakdown_percentages_are_not_rounded():
    rows = count_breakdown({"pending": 1, "completed": 7}, ["pending", "completed", "cancelled"], 8)
    assert [r["percentage"] for r in rows] == [12.5, 87.5, 0.0]
    assert count_breakdown({}, ["pending"], 0) == [{"key": "pending", "count": 0, "percentage": 0.0}]


def test_create_validates_and_scores(client):
    assert client.get("/consultations").status_code == 401

    headers = _login(client, "client@example.com")
    r = _request(client, headers, subject="Hi", description="too short")
    assert r.status_code == 400
    assert {e.split(":")[0] for e in r.json["errors"]} == {"subject", "description"}

    r = _request(client, headers, preferred_times='["mon am", "tue pm"]')
    assert r.status_code == 201
    c = r.json["consultation"]
    assert c["status"] == "pending"
    assert c["priority_score"] == 4
    assert c["preferred_times"] == ["mon am", "tue pm"]
    assert c["requester_email"] == "client@example.com"

    r = _request(client, headers, preferred_times="{not json", urgency=None)
    assert r.status_code == 400  # urgency must be one of the levels

    r = _request(client, headers, preferred_times="{not json", consultation_type="strategy", urgency="critical")
    assert r.json["consultation"]["preferred_times"] is None
    assert r.json["consultation"]["priority_score"] == 6


def test_visibility_rules(client, app):
    headers = _login(client, "client@example.com")
    cid = _request(client, headers).json["consultation"]["id"]

    _login(client, "other@example.com")
    assert client.get("/consultations").json["total"] == 0
    assert client.get(f"/consultations/{cid}").status_code == 404

    _login(client, "consultant@example.com")
    # unassigned requests show up in the queue, but not by id
    assert client.get("/consultations").json["total"] == 1
    assert client.get(f"/consultations/{cid}").status_code == 404

    _login(client)
    assert client.get(f"/consultations/{cid}").status_code == 200


def test_assign_and_work_a_consultation(client, app):
    headers = _login(client, "client@example.com")
    cid = _request(client, headers).json["consultation"]["id"]
    consultant_id = _user_id(app, "consultant@example.com")
    client_id = _user_id(app, "client@example.com")

    headers = _login(client, "consultant@example.com")
    assert client.post(f"/consultations/{cid}/assign", json={"consultant_id": consultant_id}, headers=headers).status_code == 403

    headers = _login(client)
    consultants = client.get("/consultations/consultants").json["consultants"]
    assert {c["email"] for c in consultants} == {"admin@example.com", "consultant@example.com"}

    r = client.post(f"/consultations/{cid}/assign", json={"consultant_id": client_id}, headers=headers)
    assert r.status_code == 400
    r = client.post(f"/consultations/{cid}/assign", json={"consultant_id": 999}, headers=headers)
    assert r.status_code == 404
    r = client.post(f"/consultations/{cid}/assign", json={"consultant_id": consultant_id}, headers=headers)
    assert r.status_code == 200
    assert r.json["consultation"]["status"] == "in_review"
    assert r.json["consultation"]["consultant_name"] == "Consultant X"

    headers = _login(client, "consultant@example.com")
    assert client.get(f"/consultations/{cid}").status_code == 200
    r = client.post(
        f"/consultations/{cid}",
        json={"status": "scheduled", "scheduled_at": "2030-01-15T10:00:00", "priority_score": 9},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["consultation"]["scheduled_at"] == "2030-01-15T10:00:00"
    assert r.json["consultation"]["priority_score"] == 9

    r = client.post(f"/consultations/{cid}", json={"priority_score": 11}, headers=headers)
    assert r.status_code == 400
    r = client.post(f"/consultations/{cid}", json={"assigned_consultant_id": None}, headers=headers)
    assert r.status_code == 403

    r = client.post(f"/consultations/{cid}/complete", json={"notes": "Delivered the plan."}, headers=headers)
    assert r.json["consultation"]["status"] == "completed"
    assert r.json["consultation"]["completed_at"]
    assert r.json["consultation"]["consultation_notes"] == "Delivered the plan."

    # requesters can read but not change their consultation
    headers = _login(client, "client@example.com")
    assert client.get(f"/consultations/{cid}").status_code == 200
    assert client.post(f"/consultations/{cid}/complete", json={}, headers=headers).status_code == 403


def test_filters_and_sorting(client):
    headers = _login(client, "client@example.com")
    _request(client, headers, urgency="low", consultation_type="training", subject="Team training day")
    _request(client, headers, urgency="critical", consultation_type="strategy", specific_challenges="Board wants an AI roadmap")

    _login(client)
    r = client.get("/consultations?sort_by=urgency&sort_order=desc")
    assert [c["priority_score"] for c in r.json["consultations"]] == [6, 1]
    assert client.get("/consultations?q=roadmap").json["total"] == 1
    assert client.get("/consultations?consultation_type=training").json["total"] == 1
    assert client.get("/consultations?industry=logis").json["total"] == 2
    assert client.get("/consultations?date_from=2000-01-01").json["total"] == 2
    assert client.get("/consultations?date_to=2000-01-01").json["total"] == 0
    assert client.get("/consultations?date_from=yesterday").status_code == 400


def test_stats_and_delete(client, app):
    _login(client)
    stats = client.get("/consultations/stats").json["stats"]
    assert stats["total_consultations"] == 0
    assert stats["average_resolution_time"] == 0
    assert all(b["percentage"] == 0 for b in stats["status_breakdown"])

    headers = _login(client, "client@example.com")
    first = _request(client, headers).json["consultation"]["id"]
    _request(client, headers, urgency="low")
    _request(client, headers, consultation_type="strategy")
    _request(client, headers, consultation_type="strategy")

    headers = _login(client)
    client.post(f"/consultations/{first}/complete", json={}, headers=headers)
    stats = client.get("/consultations/stats").json["stats"]
    assert stats["total_consultations"] == 4
    assert stats["pending_consultations"] == 3
    assert stats["completed_consultations"] == 1
    status = {b["status"]: b for b in stats["status_breakdown"]}
    assert status["pending"]["percentage"] == 75
    assert status["completed"]["percentage"] == 25
    types = {b["type"]: b["count"] for b in stats["type_breakdown"]}
    assert types["strategy"] == 2 and types["implementation"] == 2
    urgency = {b["urgency"]: b["count"] for b in stats["urgency_breakdown"]}
    assert urgency == {"critical": 0, "high": 3, "medium": 0, "low": 1}
    assert stats["average_resolution_time"] == 0.0

    consultant = _login(client, "consultant@example.com")
    assert client.get("/consultations/stats").status_code == 403
    assert client.post(f"/consultations/{first}/delete", headers=consultant).status_code == 403

    headers = _login(client)
    assert client.post(f"/consultations/{first}/delete", headers=headers).status_code == 200
    assert client.get(f"/consultations/{first}").status_code == 404
