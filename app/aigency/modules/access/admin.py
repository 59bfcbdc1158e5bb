from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.errors import NotFound
from app.aigency.models import Role, User
from app.aigency.modules.access.schemas import AssignRolesIn, PermissionOverrideIn, RoleCreateIn, RoleUpdateIn
from app.aigency.modules.access.service import (
    assign_roles,
    create_role,
    delete_role,
    list_permissions,
    list_roles,
    permissions_by_category,
    remove_user_permission,
    set_user_permission,
    update_role,
    user_access,
)
from app.aigency.rbac import current_user, require_login, require_permission, user_has_permission
from app.aigency.revalidate import revalidate_path
from app.aigency.utils import ok, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("access", __name__)


def _role_or_404(role_id: int) -> Role:
    role = db_session().get(Role, role_id)
    if not role:
        raise NotFound("Role")
    return role


def _user_or_404(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if not user:
        raise NotFound("User")
    return user


# ---------- Permissions ----------
@bp.get("/permissions")
@require_permission("permissions.view")
def permissions_list():
    return ok(permissions=[p.to_dict() for p in list_permissions(db_session())])


@bp.get("/permissions/by-category")
@require_permission("permissions.view")
def permissions_grouped():
    return ok(categories=permissions_by_category(db_session()))


@bp.get("/permissions/check")
@require_login
def permissions_check():
    key = (request.args.get("key") or "").strip()
    return ok(permission=key, allowed=user_has_permission(current_user(), key))


# ---------- Roles ----------
@bp.get("/roles")
@require_permission("roles.view")
def roles_list():
    return ok(roles=[r.to_dict() for r in list_roles(db_session())])


@bp.get("/roles/<int:role_id>")
@require_permission("roles.view")
def roles_detail(role_id: int):
    return ok(role=_role_or_404(role_id).to_dict())


@bp.post("/roles")
@require_permission("roles.create")
def roles_create():
    s = db_session()
    data = validate_payload(RoleCreateIn, request_payload())
    role = create_role(s, data, current_user())
    s.commit()
    revalidate_path("/admin/roles")
    return ok(role=role.to_dict()), 201


@bp.post("/roles/<int:role_id>")
@require_permission("roles.edit")
def roles_update(role_id: int):
    s = db_session()
    role = _role_or_404(role_id)
    data = validate_payload(RoleUpdateIn, request_payload())
    update_role(s, role, data, current_user())
    s.commit()
    revalidate_path("/admin/roles", f"/admin/roles/{role.id}")
    return ok(role=role.to_dict())


@bp.post("/roles/<int:role_id>/delete")
@require_permission("roles.delete")
def roles_delete(role_id: int):
    s = db_session()
    role = _role_or_404(role_id)
    moved = delete_role(s, role, current_user())
    s.commit()
    revalidate_path("/admin/roles")
    return ok(deleted=role_id, moved_users=moved)


# ---------- Per-user access ----------
@bp.get("/users/<int:user_id>/access")
@require_permission("roles.view")
def user_access_detail(user_id: int):
    return ok(access=user_access(_user_or_404(user_id)))


@bp.post("/users/<int:user_id>/roles")
@require_permission("roles.assign")
def user_roles_assign(user_id: int):
    s = db_session()
    user = _user_or_404(user_id)
    data = validate_payload(AssignRolesIn, request_payload())
    assign_roles(s, user, data.role_ids, current_user())
    s.commit()
    return ok(access=user_access(user))


@bp.post("/users/<int:user_id>/permissions")
@require_permission("roles.assign")
def user_permission_set(user_id: int):
    s = db_session()
    user = _user_or_404(user_id)
    data = validate_payload(PermissionOverrideIn, request_payload())
    set_user_permission(s, user, data.permission_id, data.granted, current_user())
    s.commit()
    return ok(access=user_access(user))


@bp.post("/users/<int:user_id>/permissions/<int:permission_id>/delete")
@require_permission("roles.assign")
def user_permission_remove(user_id: int, permission_id: int):
    s = db_session()
    user = _user_or_404(user_id)
    removed = remove_user_permission(s, user, permission_id, current_user())
    s.commit()
    return ok(removed=removed, access=user_access(user))
