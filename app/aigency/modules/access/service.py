from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from app.aigency.audit import record_event
from app.aigency.errors import Conflict, NotFound, ValidationFailed
from app.aigency.models import Permission, Role, User, UserPermission
from app.aigency.rbac import effective_permission_keys

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.modules.access.schemas import RoleCreateIn, RoleUpdateIn


CATEGORY_DISPLAY_NAMES = {
    "user_management": "User Management",
    "content": "Content Management",
    "analytics": "Analytics",
    "usage": "Feature Usage",
    "assessments": "Assessments",
    "consultations": "Consultations",
    "tools": "AI Tools",
    "community": "Community",
}


def category_display_name(category: str) -> str:
    if category in CATEGORY_DISPLAY_NAMES:
        return CATEGORY_DISPLAY_NAMES[category]
    return (category or "").replace("_", " ").capitalize()


def role_key_from_name(name: str) -> str:
    key = re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")
    return key[:64]


def list_permissions(s: "Session") -> list[Permission]:
    return s.query(Permission).order_by(Permission.category.asc(), Permission.key.asc()).all()


def permissions_by_category(s: "Session") -> list[dict]:
    grouped: dict[str, list[Permission]] = {}
    for p in list_permissions(s):
        grouped.setdefault(p.category, []).append(p)
    return [
        {
            "category": cat,
            "display_name": category_display_name(cat),
            "permissions": [p.to_dict() for p in perms],
        }
        for cat, perms in grouped.items()
    ]


def list_roles(s: "Session") -> list[Role]:
    return s.query(Role).order_by(Role.name.asc()).all()


def _permissions_by_id(s: "Session", ids: list[int]) -> list[Permission]:
    ids = sorted(set(ids))
    if not ids:
        return []
    perms = s.query(Permission).filter(Permission.id.in_(ids)).all()
    missing = set(ids) - {p.id for p in perms}
    if missing:
        raise ValidationFailed([f"Unknown permission id: {i}" for i in sorted(missing)])
    return perms


def _clear_other_defaults(s: "Session", role: Role) -> None:
    for other in s.query(Role).filter(Role.is_default.is_(True), Role.id != role.id).all():
        other.is_default = False


def create_role(s: "Session", data: "RoleCreateIn", actor: User) -> Role:
    key = data.key or role_key_from_name(data.name)
    if not key:
        raise ValidationFailed(["key: could not derive a role key from the name"])
    if s.query(Role.id).filter(Role.key == key).first():
        raise Conflict(f"A role with key '{key}' already exists.")
    now = datetime.utcnow()
    role = Role(
        key=key,
        name=data.name,
        description=data.description or None,
        is_default=data.is_default,
        is_system=False,
        created_at=now,
        updated_at=now,
    )
    role.permissions.extend(_permissions_by_id(s, data.permission_ids))
    s.add(role)
    s.flush()
    if role.is_default:
        _clear_other_defaults(s, role)
    record_event(
        s,
        actor=actor,
        action="role.create",
        entity_type="Role",
        entity_id=str(role.id),
        metadata={"key": role.key, "is_default": role.is_default, "permissions": sorted(p.key for p in role.permissions)},
    )
    return role


def update_role(s: "Session", role: Role, data: "RoleUpdateIn", actor: User) -> Role:
    """Update role fields; permission_ids, when given, replaces the whole set."""
    before = {
        "name": role.name,
        "description": role.description,
        "is_default": role.is_default,
        "permissions": sorted(p.key for p in role.permissions),
    }
    if data.name is not None:
        role.name = data.name
    if data.description is not None:
        role.description = data.description or None
    if data.is_default is not None:
        role.is_default = data.is_default
    if data.permission_ids is not None:
        role.permissions = _permissions_by_id(s, data.permission_ids)
    if role.is_default:
        _clear_other_defaults(s, role)
    role.updated_at = datetime.utcnow()
    after = {
        "name": role.name,
        "description": role.description,
        "is_default": role.is_default,
        "permissions": sorted(p.key for p in role.permissions),
    }
    record_event(
        s,
        actor=actor,
        action="role.update",
        entity_type="Role",
        entity_id=str(role.id),
        metadata={"before": before, "after": after},
    )
    return role


def delete_role(s: "Session", role: Role, actor: User) -> int:
    """
    Delete a non-system role. Members move to the default role when there is
    one; otherwise they just lose this role. Returns the number of users moved.
    """
    if role.is_system:
        raise ValidationFailed(["System roles cannot be deleted."])
    fallback = s.query(Role).filter(Role.is_default.is_(True), Role.id != role.id).first()
    moved = 0
    for user in list(role.users):
        user.roles.remove(role)
        if fallback and fallback not in user.roles:
            user.roles.append(fallback)
            moved += 1
    record_event(
        s,
        actor=actor,
        action="role.delete",
        entity_type="Role",
        entity_id=str(role.id),
        metadata={"key": role.key, "moved_users": moved, "fallback_role": fallback.key if fallback else None},
    )
    role.permissions.clear()
    s.delete(role)
    return moved


def user_access(user: User) -> dict:
    return {
        "user_id": user.id,
        "roles": [r.to_dict(with_permissions=False) for r in user.roles],
        "permissions": sorted(effective_permission_keys(user)),
        "overrides": [
            {"permission_id": ov.permission_id, "permission_key": ov.permission.key, "granted": ov.granted}
            for ov in user.permission_overrides
        ],
    }


def assign_roles(s: "Session", user: User, role_ids: list[int], actor: User) -> User:
    """Replace the user's roles with exactly role_ids."""
    ids = sorted(set(role_ids))
    roles = s.query(Role).filter(Role.id.in_(ids)).all() if ids else []
    missing = set(ids) - {r.id for r in roles}
    if missing:
        raise ValidationFailed([f"Unknown role id: {i}" for i in sorted(missing)])
    before = sorted(r.key for r in user.roles)
    user.roles = roles
    record_event(
        s,
        actor=actor,
        action="user.roles_assign",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": sorted(r.key for r in roles)},
    )
    return user


def set_user_permission(s: "Session", user: User, permission_id: int, granted: bool, actor: User) -> UserPermission:
    perm = s.get(Permission, permission_id)
    if not perm:
        raise NotFound("Permission")
    ov = next((o for o in user.permission_overrides if o.permission_id == permission_id), None)
    if ov is None:
        ov = UserPermission(permission=perm, granted=granted, granted_by_user_id=actor.id)
        user.permission_overrides.append(ov)
    else:
        ov.granted = granted
        ov.granted_by_user_id = actor.id
        ov.created_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="user.permission_override",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"permission": perm.key, "granted": granted},
    )
    return ov


def remove_user_permission(s: "Session", user: User, permission_id: int, actor: User) -> bool:
    ov = next((o for o in user.permission_overrides if o.permission_id == permission_id), None)
    if ov is None:
        return False
    key = ov.permission.key if ov.permission else str(permission_id)
    user.permission_overrides.remove(ov)
    record_event(
        s,
        actor=actor,
        action="user.permission_override_remove",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"permission": key},
    )
    return True
