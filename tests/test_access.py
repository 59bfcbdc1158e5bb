"""Roles, permissions and per-user overrides."""
import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import Base, Permission, Role, User
from app.aigency.modules.access.service import category_display_name, role_key_from_name
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
        s.add(User(email="member@example.com", password_hash=generate_password_hash("pw"), is_active=True))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _ids(app, model, *keys):
    with session_scope(app) as s:
        return [s.query(model).filter(model.key == k).one().id for k in keys]


def _user_id(app, email):
    with session_scope(app) as s:
        return s.query(User).filter(User.email == email).one().id


def test_category_display_names():
    assert category_display_name("user_management") == "User Management"
    assert category_display_name("content") == "Content Management"
    assert category_display_name("tools") == "AI Tools"
    assert category_display_name("usage") == "Feature Usage"
    assert category_display_name("billing_stuff") == "Billing stuff"


def test_role_key_from_name():
    assert role_key_from_name("Content Editor") == "content_editor"
    assert role_key_from_name("  QA / Review ") == "qa_review"


def test_roles_require_permission(client):
    assert client.get("/admin/roles").status_code == 401
    _login(client, "member@example.com")
    assert client.get("/admin/roles").status_code == 403


def test_permissions_grouped_by_category(client):
    _login(client)
    r = client.get("/admin/permissions/by-category")
    assert r.status_code == 200
    names = {c["category"]: c["display_name"] for c in r.json["categories"]}
    assert names["user_management"] == "User Management"
    assert names["consultations"] == "Consultations"


def test_create_update_delete_role(client, app):
    headers = _login(client)
    blog_manage, = _ids(app, Permission, "blog.manage")

    r = client.post(
        "/admin/roles",
        json={"name": "Content Editor", "description": "Writes posts", "permission_ids": [blog_manage]},
        headers=headers,
    )
    assert r.status_code == 201
    role = r.json["role"]
    assert role["key"] == "content_editor"
    assert [p["key"] for p in role["permissions"]] == ["blog.manage"]

    r = client.get(f"/admin/roles/{role['id']}")
    assert r.json["role"]["description"] == "Writes posts"

    publish, = _ids(app, Permission, "blog.publish")
    r = client.post(f"/admin/roles/{role['id']}", json={"permission_ids": [publish]}, headers=headers)
    assert r.status_code == 200
    assert [p["key"] for p in r.json["role"]["permissions"]] == ["blog.publish"]

    r = client.post(f"/admin/roles/{role['id']}/delete", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/admin/roles/{role['id']}").status_code == 404


def test_create_role_rejects_unknown_permission_and_short_name(client):
    headers = _login(client)
    r = client.post("/admin/roles", json={"name": "Ed", "permission_ids": []}, headers=headers)
    assert r.status_code == 400
    r = client.post("/admin/roles", json={"name": "Editors", "permission_ids": [99999]}, headers=headers)
    assert r.status_code == 400
    assert "99999" in r.json["error"]


def test_duplicate_role_key_conflicts(client):
    headers = _login(client)
    assert client.post("/admin/roles", json={"name": "Reviewer"}, headers=headers).status_code == 201
    assert client.post("/admin/roles", json={"name": "Reviewer"}, headers=headers).status_code == 409


def test_only_one_default_role(client, app):
    headers = _login(client)
    r = client.post("/admin/roles", json={"name": "Trial", "is_default": True}, headers=headers)
    assert r.status_code == 201
    with session_scope(app) as s:
        defaults = [r.key for r in s.query(Role).filter(Role.is_default.is_(True)).all()]
    assert defaults == ["trial"]


def test_system_role_cannot_be_deleted(client, app):
    headers = _login(client)
    admin_role, = _ids(app, Role, "admin")
    r = client.post(f"/admin/roles/{admin_role}/delete", headers=headers)
    assert r.status_code == 400
    assert "System roles" in r.json["error"]


def test_deleting_role_moves_members_to_default(client, app):
    headers = _login(client)
    member_id = _user_id(app, "member@example.com")
    r = client.post("/admin/roles", json={"name": "Beta Testers"}, headers=headers)
    role_id = r.json["role"]["id"]
    client.post(f"/admin/users/{member_id}/roles", json={"role_ids": [role_id]}, headers=headers)

    r = client.post(f"/admin/roles/{role_id}/delete", headers=headers)
    assert r.json["moved_users"] == 1
    r = client.get(f"/admin/users/{member_id}/access")
    assert [x["key"] for x in r.json["access"]["roles"]] == ["client"]


def test_assign_roles_and_overrides(client, app):
    headers = _login(client)
    member_id = _user_id(app, "member@example.com")
    consultant, = _ids(app, Role, "consultant")
    analytics, = _ids(app, Permission, "analytics.view")

    r = client.post(f"/admin/users/{member_id}/roles", json={"role_ids": [consultant]}, headers=headers)
    assert r.status_code == 200
    perms = set(r.json["access"]["permissions"])
    assert "analytics.view" in perms and "blog.manage" in perms

    # revoke one role permission
    r = client.post(
        f"/admin/users/{member_id}/permissions",
        json={"permission_id": analytics, "granted": False},
        headers=headers,
    )
    assert "analytics.view" not in r.json["access"]["permissions"]

    # flip it (upsert, still one override row)
    r = client.post(
        f"/admin/users/{member_id}/permissions",
        json={"permission_id": analytics, "granted": True},
        headers=headers,
    )
    assert len(r.json["access"]["overrides"]) == 1
    assert "analytics.view" in r.json["access"]["permissions"]

    r = client.post(f"/admin/users/{member_id}/permissions/{analytics}/delete", headers=headers)
    assert r.json["removed"] is True
    assert r.json["access"]["overrides"] == []

    r = client.post(f"/admin/users/{member_id}/roles", json={"role_ids": [424242]}, headers=headers)
    assert r.status_code == 400


def test_permission_check_for_current_user(client):
    _login(client, "member@example.com")
    r = client.get("/admin/permissions/check?key=blog.manage")
    assert r.status_code == 200
    assert r.json["allowed"] is False
