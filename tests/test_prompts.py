import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import AuditEvent, Base, User
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
        for email in ("alice@example.com", "bob@example.com"):
            s.add(User(email=email, password_hash=generate_password_hash("pw"), first_name=email[:3], last_name="X", is_active=True))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    client.post("/auth/logout")
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _create(client, headers, **overrides):
    body = {
        "title": "Cold outreach email",
        "prompt_text": "Write a short cold email to {prospect} about {offer}.",
        "tags": "sales, email",
        "industries": ["saas"],
        "complexity_level": "intermediate",
    }
    body.update(overrides)
    return client.post("/prompts", json=body, headers=headers)


def test_private_prompts_are_visible_only_to_author_and_managers(client):
    headers = _login(client, "alice@example.com")
    r = _create(client, headers, is_public=False)
    assert r.status_code == 201
    prompt = r.json["prompt"]
    assert prompt["tags"] == ["sales", "email"]
    assert prompt["content"].startswith("Write a short")
    assert prompt["version"] == 1

    assert client.get(f"/prompts/{prompt['id']}").status_code == 200

    _login(client, "bob@example.com")
    assert client.get(f"/prompts/{prompt['id']}").status_code == 404
    assert client.get("/prompts").json["total"] == 0

    _login(client)
    assert client.get(f"/prompts/{prompt['id']}").status_code == 200


def test_only_author_or_manager_can_edit(client):
    headers = _login(client, "alice@example.com")
    prompt_id = _create(client, headers).json["prompt"]["id"]

    headers = _login(client, "bob@example.com")
    r = client.post(f"/prompts/{prompt_id}", json={"title": "Hijacked"}, headers=headers)
    assert r.status_code == 403

    headers = _login(client, "alice@example.com")
    r = client.post(f"/prompts/{prompt_id}", json={"title": "Warm outreach email"}, headers=headers)
    assert r.status_code == 200
    assert r.json["prompt"]["title"] == "Warm outreach email"
    assert r.json["prompt"]["version"] == 2

    r = client.post(f"/prompts/{prompt_id}", json={"status": "deleted"}, headers=headers)
    assert r.status_code == 400


def test_featuring_requires_permission(client):
    headers = _login(client, "alice@example.com")
    assert _create(client, headers, is_featured=True).status_code == 403

    headers = _login(client)
    r = _create(client, headers, is_featured=True)
    assert r.status_code == 201
    assert client.get("/prompts?is_featured=true").json["total"] == 1


def test_filters_and_search(client):
    headers = _login(client)
    _create(client, headers)
    _create(client, headers, title="Board summary", prompt_text="Summarize this quarter for the board.", tags=["strategy"], industries=["finance"], complexity_level="advanced")

    assert [p["title"] for p in client.get("/prompts?tag=strategy").json["prompts"]] == ["Board summary"]
    assert [p["title"] for p in client.get("/prompts?industry=saas").json["prompts"]] == ["Cold outreach email"]
    assert client.get("/prompts?complexity_level=advanced").json["total"] == 1
    assert client.get("/prompts?q=QUARTER").json["total"] == 1
    titles = [p["title"] for p in client.get("/prompts?sort_by=title&sort_order=asc").json["prompts"]]
    assert titles == ["Board summary", "Cold outreach email"]


def test_usage_and_ratings(client):
    headers = _login(client)
    prompt_id = _create(client, headers).json["prompt"]["id"]

    client.post("/auth/logout")
    assert client.post(f"/prompts/{prompt_id}/use").json["usage_count"] == 1
    assert client.post(f"/prompts/{prompt_id}/use").json["usage_count"] == 2

    headers = _login(client, "alice@example.com")
    r = client.post(f"/prompts/{prompt_id}/rate", json={"rating": 5}, headers=headers)
    assert r.json == {"success": True, "rating_average": 5.0, "rating_count": 1}

    headers = _login(client, "bob@example.com")
    client.post(f"/prompts/{prompt_id}/rate", json={"rating": 2}, headers=headers)
    r = client.post(f"/prompts/{prompt_id}/rate", json={"rating": 4}, headers=headers)
    assert r.json["rating_average"] == 4.5
    assert r.json["rating_count"] == 2

    assert client.post(f"/prompts/{prompt_id}/rate", json={"rating": 6}, headers=headers).status_code == 400


def test_save_and_collections(client):
    headers = _login(client)
    prompt_id = _create(client, headers).json["prompt"]["id"]

    headers = _login(client, "alice@example.com")
    client.post(f"/prompts/{prompt_id}/save", headers=headers)
    client.post(f"/prompts/{prompt_id}/save", headers=headers)
    saved = client.get("/prompts/saved").json["prompts"]
    assert [p["id"] for p in saved] == [prompt_id]
    assert client.post(f"/prompts/{prompt_id}/unsave", headers=headers).json["removed"] is True

    col = client.post("/prompts/collections", json={"name": "Sales kit"}, headers=headers).json["collection"]
    r = client.post(f"/prompts/collections/{col['id']}/prompts/{prompt_id}", headers=headers)
    assert r.json["collection"]["prompt_ids"] == [prompt_id]
    r = client.post(f"/prompts/collections/{col['id']}/prompts/{prompt_id}/delete", headers=headers)
    assert r.json["collection"]["prompt_ids"] == []

    headers = _login(client, "bob@example.com")
    r = client.post(f"/prompts/collections/{col['id']}/prompts/{prompt_id}", headers=headers)
    assert r.status_code == 404


def test_categories_count_public_prompts(client):
    headers = _login(client)
    cats = client.get("/prompts/categories").json["categories"]
    marketing = next(c for c in cats if c["name"] == "Marketing")
    _create(client, headers, category_id=marketing["id"])
    _create(client, headers, category_id=marketing["id"], is_public=False)

    cats = client.get("/prompts/categories").json["categories"]
    assert next(c for c in cats if c["name"] == "Marketing")["prompt_count"] == 1

    r = client.post("/prompts/categories", json={"name": "marketing"}, headers=headers)
    assert r.status_code == 409
    r = _create(client, headers, category_id=9999)
    assert r.status_code == 400


def test_delete_prompt_is_audited(client, app):
    headers = _login(client, "alice@example.com")
    prompt_id = _create(client, headers).json["prompt"]["id"]
    client.post(f"/prompts/{prompt_id}/save", headers=headers)
    r = client.post(f"/prompts/{prompt_id}/delete", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/prompts/{prompt_id}").status_code == 404
    assert client.get("/prompts/saved").json["prompts"] == []
    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "prompt.delete").count() == 1


def test_list_fields_reject_objects(client):
    headers = _login(client, "alice@example.com")
    r = _create(client, headers, industries={"a": 1})
    assert r.status_code == 400
    assert any("must be a list or a comma separated string" in e for e in r.json["errors"])
    r = _create(client, headers, tags=7)
    assert r.status_code == 400
