from datetime import timedelta

import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import Base, User
from app.aigency.modules.dashboard.service import overview
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
        s.add(User(email="member@example.com", password_hash=generate_password_hash("pw"), first_name="Mem", last_name="Ber", is_active=True))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    client.post("/auth/logout")
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _tool(client, headers, name, **fields):
    r = client.post("/tools", json={"name": name, "description": f"{name} description", **fields}, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["tool"]["id"]


def _consultation(client, headers, subject, urgency):
    r = client.post(
        "/consultations",
        json={
            "subject": subject,
            "description": "We would like a second opinion on our rollout plan.",
            "consultation_type": "strategy",
            "urgency": urgency,
        },
        headers=headers,
    )
    return r.json["consultation"]["id"]


def test_requires_login(client):
    for path in ("/dashboard", "/dashboard/assessments", "/dashboard/tools", "/dashboard/activity"):
        assert client.get(path).status_code == 401


def test_days_since_signup(app):
    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "member@example.com").one()
        data = overview(s, user, now=user.created_at + timedelta(days=3, hours=5))
    assert data["days_since_signup"] == 3
    assert data["first_name"] == "Mem"
    assert data["assessments_completed"] == 0
    assert data["tools_explored"] == 0


def test_tools_and_prompts_highlights(client):
    headers = _login(client)
    alpha = _tool(client, headers, "Alpha", is_featured=True)
    beta = _tool(client, headers, "Beta", is_featured=True)
    _tool(client, headers, "Hidden", is_featured=True, is_public=False)
    _tool(client, headers, "Plain")
    client.post(
        "/prompts",
        json={"title": "Weekly report", "content": "Summarise this week's numbers for the board.", "is_featured": True},
        headers=headers,
    )
    client.post("/prompts", json={"title": "Cold email", "content": "Write a short cold email to a new lead."}, headers=headers)

    headers = _login(client, "member@example.com")
    for tool_id in (beta, beta, alpha):
        client.post(f"/tools/{tool_id}/usage", json={"session_duration": 60}, headers=headers)
    client.post("/prompts/collections", json={"name": "Reporting"}, headers=headers)

    tools = client.get("/dashboard/tools").json
    # equal ratings fall back to usage
    assert [t["name"] for t in tools["featured"]] == ["Beta", "Alpha"]
    assert [u["tool_name"] for u in tools["recent_usage"]] == ["Alpha", "Beta", "Beta"]

    prompts = client.get("/dashboard/prompts").json
    assert [p["title"] for p in prompts["featured"]] == ["Weekly report"]
    assert [(c["name"], c["prompt_count"]) for c in prompts["collections"]] == [("Reporting", 0)]

    assert client.get("/dashboard").json["overview"]["tools_explored"] == 2


def test_assessment_progress(client):
    _login(client, "member@example.com")
    assert client.get("/dashboard/assessments").json["latest"] is None

    questions = client.get("/assessments/questions").json["questions"]
    answers = {"scale": "8", "boolean": "yes", "text": "We copy figures between spreadsheets every morning."}
    responses = {
        q["id"]: (q["options"][-1] if q["question_type"] == "multiple_choice" else answers[q["question_type"]])
        for q in questions
    }
    client.post("/assessments/submit", json={"responses": {}})
    done = client.post("/assessments/submit", json={"responses": responses}).json["assessment"]["id"]

    data = client.get("/dashboard/assessments").json
    assert data["latest"]["id"] == done
    assert [c["category_name"] for c in data["category_scores"]] == [
        "Current AI Understanding",
        "Business Operations",
        "Data & Information",
    ]
    assert len(data["history"]) == 2
    assert client.get("/dashboard").json["overview"]["assessments_completed"] == 1


def test_active_consultations_by_urgency(client):
    headers = _login(client, "member@example.com")
    low = _consultation(client, headers, "Low key question", "low")
    critical = _consultation(client, headers, "Production is down", "critical")
    medium = _consultation(client, headers, "Quarterly planning", "medium")
    dropped = _consultation(client, headers, "Never mind this one", "high")

    headers = _login(client)
    client.post(f"/consultations/{dropped}", json={"status": "cancelled"}, headers=headers)

    _login(client, "member@example.com")
    ids = [c["id"] for c in client.get("/dashboard/consultations").json["consultations"]]
    assert ids == [critical, medium, low]


def test_recent_activity_merges_sources(client):
    headers = _login(client)
    tool = _tool(client, headers, "Alpha")

    headers = _login(client, "member@example.com")
    client.post("/assessments/submit", json={"responses": {}})
    client.post(f"/tools/{tool}/usage", json={}, headers=headers)
    _consultation(client, headers, "Roadmap review", "medium")

    activity = client.get("/dashboard/activity").json["activity"]
    assert [(a["type"], a["description"]) for a in activity] == [
        ("consultation", "Requested consultation"),
        ("tool", "Used tool"),
        ("assessment", "Started assessment"),
    ]
    assert activity[0]["title"] == "Roadmap review"
    assert activity[1]["title"] == "Alpha"
