import secrets
from collections.abc import Callable
from typing import Any

from flask import Request, current_app, session


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from header, form, or JSON body."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")

    if not token and req.is_json:
        json_data = req.get_json(silent=True)
        if isinstance(json_data, dict):
            token = json_data.get("csrf_token")

    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def csrf_exempt(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a public, anonymous-friendly endpoint as not needing a CSRF token."""
    fn._csrf_exempt = True  # type: ignore[attr-defined]
    return fn


def is_csrf_exempt(endpoint: str | None) -> bool:
    if not endpoint:
        return False
    view = current_app.view_functions.get(endpoint)
    return bool(view and getattr(view, "_csrf_exempt", False))
