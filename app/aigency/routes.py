from flask import Blueprint, current_app
from sqlalchemy import text

from app.aigency.db import db_session
from app.aigency.utils import ok

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return ok(service="aigency", status="running")


@bp.get("/health")
def health():
    """Liveness plus a round trip to the database."""
    try:
        db_session().execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Health check could not reach the database")
        return {"ok": False, "database": "unreachable"}, 503
    return {"ok": True, "database": "ok"}


@bp.get("/healthz")
def healthz():
    # container probe; no DB access
    return "ok", 200
