from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.errors import NotFound, ValidationFailed
from app.aigency.models import Role, User
from app.aigency.modules.accounts.schemas import PasswordResetIn, UserCreateIn, UserUpdateIn
from app.aigency.modules.accounts.service import (
    create_user,
    delete_user,
    email_exists,
    list_users,
    reset_password,
    set_user_active,
    update_user,
)
from app.aigency.rbac import (
    current_user,
    ensure_permission,
    login_user_required,
    require_permission,
    user_has_permission,
)
from app.aigency.utils import ok, paging_args, parse_bool, request_payload, sort_args
from app.aigency.validation import validate_payload

bp = Blueprint("accounts", __name__)


def _get_user_or_404(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if not user:
        raise NotFound("User")
    return user


@bp.get("/users")
@require_permission("users.view")
def users_list():
    s = db_session()
    limit, offset = paging_args()
    sort_by, descending = sort_args("created_at")
    users, total = list_users(
        s,
        role_key=(request.args.get("role") or "").strip() or None,
        is_active=parse_bool(request.args.get("is_active")),
        search=(request.args.get("q") or "").strip() or None,
        sort_by=sort_by,
        descending=descending,
        limit=limit,
        offset=offset,
    )
    return ok(users=[u.to_dict() for u in users], total=total, limit=limit, offset=offset)


@bp.get("/users/<int:user_id>")
def users_detail(user_id: int):
    actor = login_user_required()
    if actor.id != user_id:
        ensure_permission(actor, "users.view")
    return ok(user=_get_user_or_404(user_id).to_dict())


@bp.post("/users")
@require_permission("users.create")
def users_create():
    s = db_session()
    data = validate_payload(UserCreateIn, request_payload())
    user = create_user(s, data, current_user())
    s.commit()
    return ok(user=user.to_dict()), 201


@bp.post("/users/<int:user_id>")
def users_update(user_id: int):
    s = db_session()
    actor = login_user_required()
    user = _get_user_or_404(user_id)
    data = validate_payload(UserUpdateIn, request_payload())
    if user_has_permission(actor, "users.manage"):
        update_user(s, user, data, actor)
    elif actor.id == user.id:
        update_user(s, user, data, actor, self_service=True)
    else:
        ensure_permission(actor, "users.manage")
    s.commit()
    return ok(user=user.to_dict())


@bp.post("/users/<int:user_id>/active")
@require_permission("users.manage")
def users_set_active(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    is_active = parse_bool(request_payload().get("is_active"))
    if is_active is None:
        raise ValidationFailed(["is_active: must be true or false"])
    set_user_active(s, user, is_active, current_user())
    s.commit()
    return ok(user=user.to_dict())


@bp.post("/users/<int:user_id>/delete")
@require_permission("users.manage")
def users_delete(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    delete_user(s, user, current_user())
    s.commit()
    return ok(deleted=user_id)


@bp.post("/users/<int:user_id>/reset-password")
@require_permission("users.manage")
def users_reset_password(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    data = validate_payload(PasswordResetIn, request_payload())
    reset_password(s, user, data, current_user())
    s.commit()
    return ok(user_id=user.id)


@bp.get("/users/email-exists")
@require_permission("users.view")
def users_email_exists():
    return ok(exists=email_exists(db_session(), request.args.get("email") or ""))


@bp.get("/users/roles")
@require_permission("users.view")
def users_role_keys():
    roles = db_session().query(Role).order_by(Role.name.asc()).all()
    return ok(roles=[{"key": r.key, "name": r.name} for r in roles])
