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


def test_manage_requires_permission(client):
    assert client.post("/tools", json={"name": "Anon"}).status_code == 400  # no CSRF token
    headers = _login(client, "member@example.com")
    assert client.post("/tools", json={"name": "Nope"}, headers=headers).status_code == 403


def test_create_validates_endpoint_url(client):
    headers = _login(client)
    r = client.post("/tools", json={"name": "Bad", "api_endpoint": "ftp://example.com"}, headers=headers)
    assert r.status_code == 400
    assert r.json["errors"][0].startswith("api_endpoint:")
    r = client.post("/tools", json={"name": "X"}, headers=headers)
    assert r.status_code == 400


def test_public_listing_hides_private_and_inactive(client):
    headers = _login(client)
    visible = _tool(client, headers, "Doc Summarizer", tool_type="analysis", tags="docs, pdf")
    hidden = _tool(client, headers, "Internal Bot", is_public=False)
    off = _tool(client, headers, "Legacy Flow")
    client.post(f"/tools/{off}/toggle-active", headers=headers)

    assert client.get("/tools").json["total"] == 3

    client.post("/auth/logout")
    r = client.get("/tools")
    assert [t["id"] for t in r.json["tools"]] == [visible]
    assert r.json["tools"][0]["tags"] == ["docs", "pdf"]
    assert client.get(f"/tools/{hidden}").status_code == 404
    assert client.get(f"/tools/{off}").status_code == 404
    assert client.get("/tools?q=summar").json["total"] == 1


def test_grouped_by_category(client):
    headers = _login(client)
    cats = client.get("/tools/by-category").json["categories"]
    analysis = next(c["category"]["id"] for c in cats if c["category"]["name"] == "Analysis")
    _tool(client, headers, "Sheet Analyst", category_id=analysis)
    _tool(client, headers, "Loose Tool")

    groups = client.get("/tools/by-category").json["categories"]
    by_name = {(g["category"] or {}).get("name"): [t["name"] for t in g["tools"]] for g in groups}
    assert by_name["Analysis"] == ["Sheet Analyst"]
    assert by_name[None] == ["Loose Tool"]

    r = client.post("/tools/categories", json={"name": "analysis"}, headers=headers)
    assert r.status_code == 409


def test_usage_tracking(client):
    headers = _login(client)
    tool_id = _tool(client, headers, "Meeting Notes")

    client.post("/auth/logout")
    r = client.post(f"/tools/{tool_id}/usage", json={"session_duration": 30})
    assert r.json == {"success": True, "recorded": False, "usage_count": 0}

    headers = _login(client, "member@example.com")
    r = client.post(f"/tools/{tool_id}/usage", json={"session_duration": 30, "satisfaction_rating": 4}, headers=headers)
    assert r.json["recorded"] is True
    assert r.json["usage_count"] == 1

    history = client.get("/tools/usage").json["usage"]
    assert len(history) == 1 and history[0]["tool_name"] == "Meeting Notes"
    assert client.get("/tools/usage?user_id=1").status_code == 403


def test_rating_replaces_previous(client):
    headers = _login(client)
    tool_id = _tool(client, headers, "Ranker")
    headers = _login(client, "member@example.com")
    client.post(f"/tools/{tool_id}/rate", json={"rating": 1}, headers=headers)
    r = client.post(f"/tools/{tool_id}/rate", json={"rating": 3, "review": "ok"}, headers=headers)
    assert r.json["rating_average"] == 3.0
    assert r.json["rating_count"] == 1


def test_recommendations(client):
    headers = _login(client)
    analysis = _tool(client, headers, "Analyst", tool_type="analysis")
    automation = _tool(client, headers, "Automator", tool_type="automation")
    featured = _tool(client, headers, "Star Bot", tool_type="chatbot", is_featured=True)
    client.post(f"/tools/{automation}/usage", json={}, headers=headers)

    client.post("/auth/logout")
    anon = [t["id"] for t in client.get("/tools/recommended").json["tools"]]
    assert anon[0] == automation

    _login(client, "member@example.com")
    assert [t["id"] for t in client.get("/tools/recommended").json["tools"]] == [featured]

    questions = client.get("/assessments/questions").json["questions"]
    low_answers = {
        "scale": "1",
        "boolean": "no",
        "text": "none",
    }
    responses = {
        q["id"]: (q["options"][0] if q["question_type"] == "multiple_choice" else low_answers[q["question_type"]])
        for q in questions
    }
    r = client.post("/assessments/submit", json={"responses": responses})
    assert r.json["assessment"]["status"] == "completed"

    assert [t["id"] for t in client.get("/tools/recommended").json["tools"]] == [analysis]


def test_delete_tool(client):
    headers = _login(client)
    tool_id = _tool(client, headers, "Short Lived")
    client.post(f"/tools/{tool_id}/usage", json={}, headers=headers)
    r = client.post(f"/tools/{tool_id}/delete", headers=headers)
    assert r.status_code == 200
    assert "/solutions" in r.headers["X-Revalidate-Paths"]
    assert client.get(f"/tools/{tool_id}").status_code == 404


def test_tags_must_be_list_or_text(client):
    headers = _login(client)
    r = client.post("/tools", json={"name": "Tagged", "tags": {"x": 1}}, headers=headers)
    assert r.status_code == 400
    assert r.json["errors"] == ["tags: must be a list or a comma separated string"]
