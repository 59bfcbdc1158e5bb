from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.aigency.errors import NotAuthenticated, NotAuthorized
from app.aigency.models import User


def _override(user: User, permission_key: str) -> bool | None:
    for ov in user.permission_overrides:
        if ov.permission and ov.permission.key == permission_key:
            return bool(ov.granted)
    return None


def _role_grants(user: User, permission_key: str) -> bool:
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    granted = _override(user, permission_key)
    if granted is not None:
        return granted
    return _role_grants(user, permission_key)


def user_has_role(user: User | None, role_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return any(r.key == role_key for r in user.roles)


def effective_permission_keys(user: User | None) -> set[str]:
    """Role permissions with the user's grant/revoke overrides applied."""
    if not user or not user.is_active:
        return set()
    keys = {p.key for r in user.roles for p in r.permissions}
    for ov in user.permission_overrides:
        if not ov.permission:
            continue
        if ov.granted:
            keys.add(ov.permission.key)
        else:
            keys.discard(ov.permission.key)
    return keys


def current_user() -> User | None:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user


def login_user_required() -> User:
    user = current_user()
    if not user:
        raise NotAuthenticated()
    return user


def ensure_permission(user: User | None, permission_key: str) -> User:
    if not user or not user.is_active:
        raise NotAuthenticated()
    if not user_has_permission(user, permission_key):
        g.missing_permission = permission_key
        raise NotAuthorized(f"Missing permission: {permission_key}")
    return user


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        login_user_required()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            # Unauthenticated -> 401, authenticated but unauthorized -> 403
            ensure_permission(current_user(), permission_key)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
