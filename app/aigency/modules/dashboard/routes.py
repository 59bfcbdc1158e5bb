from __future__ import annotations

from flask import Blueprint

from app.aigency.db import db_session
from app.aigency.modules.dashboard.service import (
    active_consultations,
    assessment_progress,
    collections,
    featured_prompts,
    featured_tools,
    overview,
    recent_activity,
    recent_tool_usage,
)
from app.aigency.rbac import login_user_required
from app.aigency.utils import ok

bp = Blueprint("dashboard", __name__)


@bp.get("")
def dashboard_overview():
    viewer = login_user_required()
    return ok(overview=overview(db_session(), viewer))


@bp.get("/assessments")
def dashboard_assessments():
    viewer = login_user_required()
    return ok(**assessment_progress(db_session(), viewer))


@bp.get("/tools")
def dashboard_tools():
    s = db_session()
    viewer = login_user_required()
    return ok(
        featured=[t.to_dict() for t in featured_tools(s)],
        recent_usage=[u.to_dict() for u in recent_tool_usage(s, viewer)],
    )


@bp.get("/prompts")
def dashboard_prompts():
    s = db_session()
    viewer = login_user_required()
    return ok(featured=[p.to_dict() for p in featured_prompts(s)], collections=collections(s, viewer))


@bp.get("/consultations")
def dashboard_consultations():
    viewer = login_user_required()
    return ok(consultations=[c.to_dict() for c in active_consultations(db_session(), viewer)])


@bp.get("/activity")
def dashboard_activity():
    viewer = login_user_required()
    return ok(activity=recent_activity(db_session(), viewer))
