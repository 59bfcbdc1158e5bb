from datetime import date

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.errors import ValidationFailed
from app.aigency.rbac import effective_permission_keys, login_user_required, require_permission
from app.aigency.stats import (
    BROWSABLE_TABLES,
    assessment_category_breakdown,
    audit_events,
    browse_table,
    dashboard_stats,
    recent_activity,
    tool_usage_top,
    user_growth,
)
from app.aigency.utils import ok, request_payload

bp = Blueprint("admin", __name__)


def _parse_date(name: str) -> date | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationFailed([f"{name} must be YYYY-MM-DD"])


@bp.get("/")
@require_permission("admin.view")
def index():
    return ok(stats=dashboard_stats(db_session()))


@bp.get("/me")
def me():
    user = login_user_required()
    return ok(
        user=user.to_dict(),
        roles=sorted(r.key for r in user.roles),
        permissions=sorted(effective_permission_keys(user)),
    )


@bp.get("/stats")
@require_permission("analytics.view")
def stats_dashboard():
    return ok(stats=dashboard_stats(db_session()))


@bp.get("/stats/user-growth")
@require_permission("analytics.view")
def stats_user_growth():
    return ok(growth=user_growth(db_session()))


@bp.get("/stats/recent-activity")
@require_permission("analytics.view")
def stats_recent_activity():
    return ok(activity=recent_activity(db_session()))


@bp.get("/stats/assessment-categories")
@require_permission("analytics.view")
def stats_assessment_categories():
    return ok(categories=assessment_category_breakdown(db_session()))


@bp.get("/stats/tool-usage")
@require_permission("analytics.view")
def stats_tool_usage():
    return ok(tools=tool_usage_top(db_session()))


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Last 200 audit events with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD, inclusive)
    """
    events = audit_events(
        db_session(),
        action=(request.args.get("action") or "").strip() or None,
        actor_email=(request.args.get("actor_email") or "").strip() or None,
        date_from=_parse_date("date_from"),
        date_to=_parse_date("date_to"),
    )
    return ok(events=[e.to_dict() for e in events])


@bp.get("/database/tables")
@require_permission("database.browse")
def database_tables():
    return ok(tables=list(BROWSABLE_TABLES))


@bp.post("/database/browse")
@require_permission("database.browse")
def database_browse():
    table_name = str(request_payload().get("table_name") or "").strip()
    data = browse_table(db_session(), table_name)
    return ok(**data)
