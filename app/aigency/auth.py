from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from werkzeug.security import check_password_hash

from app.aigency.audit import record_event
from app.aigency.db import db_session
from app.aigency.errors import NotAuthenticated, TooManyRequests
from app.aigency.models import User
from app.aigency.modules.accounts.schemas import LoginIn, RegisterIn
from app.aigency.modules.accounts.service import register_user
from app.aigency.rbac import current_user, effective_permission_keys
from app.aigency.security import ensure_csrf_token
from app.aigency.utils import ok, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


def session_payload(user: User | None) -> dict:
    return {
        "authenticated": user is not None,
        "user": user.to_dict() if user else None,
        "permissions": sorted(effective_permission_keys(user)),
        "csrf_token": ensure_csrf_token(),
    }


def _login(user: User) -> None:
    session.clear()
    session["user_id"] = user.id
    session.permanent = True


@bp.get("/session")
def session_get():
    return ok(**session_payload(current_user()))


@bp.post("/login")
def login_post():
    payload = request_payload()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise TooManyRequests("Too many login attempts. Please wait 5 minutes.")

    _record_attempt(ip)
    data = validate_payload(LoginIn, payload)
    email = data.email.lower()

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, data.password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise NotAuthenticated("Invalid credentials.")

    _login(user)
    _login_attempts[ip].clear()
    user.last_login_at = datetime.utcnow()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    g.current_user = user
    return ok(**session_payload(user))


@bp.post("/register")
def register_post():
    s = db_session()
    data = validate_payload(RegisterIn, request_payload())
    user = register_user(s, data)
    user.last_login_at = datetime.utcnow()
    s.commit()
    _login(user)
    g.current_user = user
    current_app.logger.info("User registered (user_id=%s request_id=%s)", user.id, getattr(g, "request_id", None))
    return ok(**session_payload(user)), 201


@bp.post("/logout")
def logout():
    s = db_session()
    user = current_user()
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return ok()
