"""
Read-only aggregates for the admin dashboard and the database browser.
"""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.aigency.errors import ValidationFailed
from app.aigency.models import AuditEvent, Base, Role, User
from app.aigency.modules.assessments.models import Assessment, AssessmentResult
from app.aigency.modules.consultations.models import Consultation
from app.aigency.modules.contact.models import ContactMessage
from app.aigency.modules.prompts.models import Prompt
from app.aigency.modules.tools.models import AiTool, ToolUsage

BROWSABLE_TABLES = (
    "users",
    "roles",
    "permissions",
    "user_roles",
    "role_permissions",
    "user_permissions",
    "audit_events",
    "blog_posts",
    "prompts",
    "prompt_categories",
    "prompt_collections",
    "ai_tools",
    "tool_categories",
    "tool_usage",
    "tool_ratings",
    "assessments",
    "assessment_categories",
    "assessment_questions",
    "assessment_results",
    "consultations",
    "consultation_summaries",
    "board_room_posts",
    "contact_messages",
)
HIDDEN_COLUMNS = {"password_hash"}
BROWSE_LIMIT = 100


def _count(s: Session, model, *criteria) -> int:
    q = s.query(func.count(model.id))
    for c in criteria:
        q = q.filter(c)
    return int(q.scalar() or 0)


def dashboard_stats(s: Session) -> dict[str, int]:
    return {
        "total_users": _count(s, User),
        "total_assessments": _count(s, Assessment),
        "assessments_in_progress": _count(s, Assessment, Assessment.status == "in_progress"),
        "assessments_completed": _count(s, Assessment, Assessment.status == "completed"),
        "total_tools": _count(s, AiTool),
        "active_tools": _count(s, AiTool, AiTool.is_active.is_(True)),
        "total_roles": _count(s, Role),
        "total_prompts": _count(s, Prompt),
        "total_consultations": _count(s, Consultation),
        "pending_consultations": _count(s, Consultation, Consultation.status == "pending"),
    }


def user_growth(s: Session, *, days: int = 30, today: date | None = None) -> list[dict]:
    """New users per day, oldest first, zero-filled."""
    today = today or datetime.utcnow().date()
    start = today - timedelta(days=days - 1)
    since = datetime.combine(start, datetime.min.time())
    per_day = Counter(created.date() for (created,) in s.query(User.created_at).filter(User.created_at >= since).all())
    return [
        {"date": (start + timedelta(days=i)).isoformat(), "count": per_day.get(start + timedelta(days=i), 0)}
        for i in range(days)
    ]


def recent_activity(s: Session, *, days: int = 7) -> list[dict]:
    since = datetime.utcnow() - timedelta(days=days)
    return [
        {"name": "New Users", "count": _count(s, User, User.created_at >= since)},
        {"name": "Assessments", "count": _count(s, Assessment, Assessment.created_at >= since)},
        {"name": "Consultations", "count": _count(s, Consultation, Consultation.created_at >= since)},
        {"name": "Contact Messages", "count": _count(s, ContactMessage, ContactMessage.created_at >= since)},
    ]


def assessment_category_breakdown(s: Session) -> list[dict]:
    counts: Counter[str] = Counter()
    for r in s.query(AssessmentResult).all():
        counts[r.category.name if r.category else "Uncategorized"] += 1
    total = sum(counts.values())
    return [
        {"category": name, "count": n, "percentage": round(n / total * 100, 1) if total else 0.0}
        for name, n in counts.most_common()
    ]


def tool_usage_top(s: Session, *, limit: int = 10) -> list[dict]:
    rows = (
        s.query(AiTool.id, AiTool.name, func.count(ToolUsage.id).label("uses"))
        .outerjoin(ToolUsage, ToolUsage.tool_id == AiTool.id)
        .filter(AiTool.is_active.is_(True))
        .group_by(AiTool.id, AiTool.name)
        .order_by(func.count(ToolUsage.id).desc(), AiTool.name.asc())
        .limit(limit)
        .all()
    )
    return [{"tool_id": tid, "name": name, "usage_count": int(uses)} for tid, name, uses in rows]


def audit_events(
    s: Session,
    *,
    action: str | None = None,
    actor_email: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 200,
) -> list[AuditEvent]:
    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        # inclusive end date
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), datetime.min.time()))
    return q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def browse_table(s: Session, table_name: str) -> dict[str, Any]:
    if table_name not in BROWSABLE_TABLES or table_name not in Base.metadata.tables:
        raise ValidationFailed(["Invalid table name"])
    table = Base.metadata.tables[table_name]
    columns = [c for c in table.columns if c.name not in HIDDEN_COLUMNS]

    total = int(s.execute(select(func.count()).select_from(table)).scalar() or 0)
    result = s.execute(select(*columns).limit(BROWSE_LIMIT))
    rows = [{k: _jsonable(v) for k, v in row._mapping.items()} for row in result]
    return {
        "table_name": table_name,
        "columns": [c.name for c in columns],
        "rows": rows,
        "count": total,
    }
