import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.aigency.db import make_sessionmaker  # noqa: E402
from app.aigency.models import Permission, Role, User  # noqa: E402
from app.aigency.modules.assessments.questionnaire import ensure_default_questionnaire  # noqa: E402
from app.aigency.modules.prompts.models import PromptCategory  # noqa: E402
from app.aigency.modules.tools.models import ToolCategory  # noqa: E402

# (key, name, category)
PERMISSIONS = [
    ("admin.view", "Admin: view dashboard", "admin"),
    ("analytics.view", "Analytics: view", "analytics"),
    ("database.browse", "Database: browse tables", "admin"),
    ("users.view", "Users: view", "user_management"),
    ("users.create", "Users: create", "user_management"),
    ("users.manage", "Users: manage", "user_management"),
    ("roles.view", "Roles: view", "user_management"),
    ("roles.create", "Roles: create", "user_management"),
    ("roles.edit", "Roles: edit", "user_management"),
    ("roles.delete", "Roles: delete", "user_management"),
    ("roles.assign", "Roles: assign to users", "user_management"),
    ("permissions.view", "Permissions: view", "user_management"),
    ("blog.manage", "Blog: write and edit own posts", "content"),
    ("blog.manage_all", "Blog: edit any post", "content"),
    ("blog.publish", "Blog: publish", "content"),
    ("prompts.manage", "Prompts: manage", "content"),
    ("prompts.feature", "Prompts: feature", "content"),
    ("tools.manage", "AI Tools: manage", "tools"),
    ("assessments.manage", "Assessments: manage", "assessments"),
    ("consultations.manage", "Consultations: manage", "consultations"),
    ("consultations.assign", "Consultations: assign", "consultations"),
    ("boardroom.moderate", "Board room: pin, hide and announce", "community"),
    ("contacts.manage", "Contact messages: manage", "usage"),
]

CONSULTANT_PERMISSIONS = ("admin.view", "analytics.view", "assessments.manage", "prompts.manage", "blog.manage")

PROMPT_CATEGORIES = [
    ("Marketing", "Campaigns, copy and positioning"),
    ("Sales", "Outreach, follow-ups and proposals"),
    ("Operations", "Process documentation and automation"),
    ("Customer Support", "Replies, macros and knowledge base"),
    ("Strategy", "Planning and decision support"),
]

TOOL_CATEGORIES = [
    ("Analysis", "Data analysis and reporting", "blue"),
    ("Automation", "Workflow and process automation", "green"),
    ("Content", "Writing and content generation", "purple"),
    ("Customer Service", "Chat and support assistants", "orange"),
]


@contextmanager
def _session_scope(database_url: str):
    s: Session = make_sessionmaker(create_engine(database_url, future=True))()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def _ensure_role(s: Session, key: str, name: str, **flags) -> Role:
    role = s.query(Role).filter(Role.key == key).one_or_none()
    if not role:
        role = Role(key=key, name=name, **flags)
        s.add(role)
    return role


def seed(s: Session, *, admin_email: str, admin_password: str) -> User:
    """Idempotent seed against an open session. Never overwrites an existing admin password."""

    def ensure_perm(key: str, name: str, category: str) -> Permission:
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name, category=category)
            s.add(p)
        return p

    perms = {key: ensure_perm(key, name, category) for key, name, category in PERMISSIONS}

    role_admin = _ensure_role(s, "admin", "Administrator", description="Full access", is_system=True)
    for p in perms.values():
        if p not in role_admin.permissions:
            role_admin.permissions.append(p)

    role_consultant = _ensure_role(s, "consultant", "Consultant", description="Works assigned consultations", is_system=True)
    for key in CONSULTANT_PERMISSIONS:
        if perms[key] not in role_consultant.permissions:
            role_consultant.permissions.append(perms[key])

    role_client = _ensure_role(s, "client", "Client", description="Self sign-up default", is_system=True)
    if not s.query(Role).filter(Role.is_default.is_(True)).first():
        role_client.is_default = True

    user = s.query(User).filter(User.email == admin_email).one_or_none()
    if not user:
        user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
        s.add(user)
    if role_admin not in user.roles:
        user.roles.append(role_admin)

    for order, (name, description) in enumerate(PROMPT_CATEGORIES, start=1):
        if not s.query(PromptCategory).filter(PromptCategory.name == name).one_or_none():
            s.add(PromptCategory(name=name, description=description, sort_order=order))
    for order, (name, description, color) in enumerate(TOOL_CATEGORIES, start=1):
        if not s.query(ToolCategory).filter(ToolCategory.name == name).one_or_none():
            s.add(ToolCategory(name=name, description=description, color=color, sort_order=order))

    s.flush()
    added = ensure_default_questionnaire(s)
    print(f"Assessment questions added: {added}")
    return user


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user and reference data in an idempotent way.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@aigency.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///aigency.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with _session_scope(db_url) as s:
        seed(s, admin_email=admin_email, admin_password=admin_password)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
