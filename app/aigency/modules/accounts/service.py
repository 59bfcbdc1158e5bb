from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_
from werkzeug.security import generate_password_hash

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import Conflict, NotAuthorized, ValidationFailed
from app.aigency.models import Role, User
from app.aigency.modules.accounts.schemas import SELF_EDITABLE_FIELDS

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.modules.accounts.schemas import PasswordResetIn, RegisterIn, UserCreateIn, UserUpdateIn


USER_SORT_FIELDS = {
    "created_at": User.created_at,
    "last_login_at": User.last_login_at,
    "first_name": User.first_name,
    "company_name": User.company_name,
    "email": User.email,
}


def email_exists(s: "Session", email: str) -> bool:
    email = (email or "").strip().lower()
    if not email:
        return False
    return s.query(User.id).filter(User.email == email).first() is not None


def default_role(s: "Session") -> Role | None:
    return s.query(Role).filter(Role.is_default.is_(True)).order_by(Role.id.asc()).first()


def _roles_by_key(s: "Session", keys: list[str]) -> list[Role]:
    keys = sorted({k.strip() for k in keys if k and k.strip()})
    if not keys:
        return []
    roles = s.query(Role).filter(Role.key.in_(keys)).all()
    unknown = set(keys) - {r.key for r in roles}
    if unknown:
        raise ValidationFailed([f"Unknown role: {k}" for k in sorted(unknown)])
    return roles


def list_users(
    s: "Session",
    *,
    role_key: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    descending: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[User], int]:
    q = s.query(User)
    if role_key:
        q = q.filter(User.roles.any(Role.key == role_key))
    if is_active is not None:
        q = q.filter(User.is_active.is_(is_active))
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(
            or_(
                func.lower(User.email).like(like),
                func.lower(User.first_name).like(like),
                func.lower(User.last_name).like(like),
                func.lower(User.company_name).like(like),
            )
        )
    total = q.count()
    col = USER_SORT_FIELDS.get(sort_by, User.created_at)
    q = q.order_by(col.desc() if descending else col.asc(), User.id.desc() if descending else User.id.asc())
    return q.offset(offset).limit(limit).all(), total


def register_user(s: "Session", data: "RegisterIn") -> User:
    """Self sign-up. New accounts get the default role."""
    if email_exists(s, data.email):
        raise Conflict("An account with this email already exists.")
    now = datetime.utcnow()
    user = User(
        email=data.email,
        password_hash=generate_password_hash(data.password),
        is_active=True,
        first_name=data.first_name,
        last_name=data.last_name,
        company_name=data.company_name,
        phone=data.phone,
        job_title=data.job_title,
        industry=data.industry,
        company_size=data.company_size,
        created_at=now,
        updated_at=now,
    )
    role = default_role(s)
    if role:
        user.roles.append(role)
    s.add(user)
    s.flush()
    record_event(
        s,
        actor=user,
        action="user.register",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "roles": [r.key for r in user.roles]},
    )
    return user


def create_user(s: "Session", data: "UserCreateIn", actor: User) -> User:
    if email_exists(s, data.email):
        raise Conflict("An account with this email already exists.")
    roles = _roles_by_key(s, data.role_keys)
    if not roles:
        role = default_role(s)
        roles = [role] if role else []
    now = datetime.utcnow()
    user = User(
        email=data.email,
        password_hash=generate_password_hash(data.password),
        is_active=data.is_active,
        first_name=data.first_name,
        last_name=data.last_name,
        company_name=data.company_name,
        phone=data.phone,
        job_title=data.job_title,
        industry=data.industry,
        company_size=data.company_size,
        created_at=now,
        updated_at=now,
    )
    user.roles.extend(roles)
    s.add(user)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "roles": [r.key for r in user.roles]},
    )
    return user


def update_user(s: "Session", user: User, data: "UserUpdateIn", actor: User, *, self_service: bool = False) -> User:
    """
    Admins may change every field; a user editing their own account is limited
    to SELF_EDITABLE_FIELDS.
    """
    updates = data.model_dump(exclude_unset=True)
    if self_service:
        blocked = sorted(set(updates) - set(SELF_EDITABLE_FIELDS))
        if blocked:
            raise NotAuthorized(f"You cannot change: {', '.join(blocked)}")
    if "is_active" in updates:
        if user.id == actor.id and not updates["is_active"]:
            raise ValidationFailed(["You cannot deactivate your own account."])
        if updates["is_active"] is None:
            updates.pop("is_active")
    if "email" in updates:
        if not updates["email"]:
            updates.pop("email")
        elif updates["email"] != user.email and email_exists(s, updates["email"]):
            raise Conflict("An account with this email already exists.")

    changes = apply_changes(user, updates)
    if changes:
        user.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="user.update",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"changes": changes, "self_service": self_service},
        )
    return user


def set_user_active(s: "Session", user: User, is_active: bool, actor: User) -> User:
    if user.id == actor.id:
        raise ValidationFailed(["You cannot change the active flag on your own account."])
    if user.is_active != is_active:
        user.is_active = is_active
        user.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="user.activate" if is_active else "user.deactivate",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"email": user.email},
        )
    return user


def delete_user(s: "Session", user: User, actor: User) -> None:
    if user.id == actor.id:
        raise ValidationFailed(["You cannot delete your own account."])
    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "roles": [r.key for r in user.roles]},
    )
    user.roles.clear()
    s.delete(user)


def reset_password(s: "Session", user: User, data: "PasswordResetIn", actor: User) -> User:
    user.password_hash = generate_password_hash(data.password)
    user.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="user.password_reset",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"target_email": user.email, "reset_by": actor.email},
    )
    return user
