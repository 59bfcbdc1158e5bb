"""
Signed-in user's home page: what they have done so far and what to look at next.

Everything here is read-only and scoped to the viewer.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import distinct, func

from app.aigency.models import User
from app.aigency.modules.assessments.models import Assessment
from app.aigency.modules.consultations.models import Consultation
from app.aigency.modules.prompts.models import Prompt, PromptCollection
from app.aigency.modules.tools.models import AiTool, ToolUsage
from app.aigency.utils import iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

URGENCY_RANK = {"critical": 1, "high": 2, "medium": 3, "low": 4}
CLOSED_STATUSES = ("completed", "cancelled")
ACTIVITY_LIMIT = 10

ASSESSMENT_ACTIVITY = {"completed": "Completed assessment", "in_progress": "Started assessment"}
CONSULTATION_ACTIVITY = {
    "pending": "Requested consultation",
    "scheduled": "Consultation scheduled",
    "in_progress": "Consultation in progress",
    "completed": "Consultation completed",
}


def overview(s: "Session", user: User, *, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    completed = (
        s.query(Assessment).filter(Assessment.user_id == user.id, Assessment.status == "completed").count()
    )
    tools_explored = (
        s.query(func.count(distinct(ToolUsage.tool_id))).filter(ToolUsage.user_id == user.id).scalar() or 0
    )
    return {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "display_name": user.display_name,
        "days_since_signup": max(0, (now - user.created_at).days) if user.created_at else 0,
        "assessments_completed": completed,
        "tools_explored": tools_explored,
    }


def assessment_progress(s: "Session", user: User) -> dict:
    latest = (
        s.query(Assessment)
        .filter(Assessment.user_id == user.id, Assessment.status == "completed")
        .order_by(Assessment.completed_at.desc(), Assessment.id.desc())
        .first()
    )
    category_scores = []
    if latest:
        results = sorted(latest.results, key=lambda r: (r.category.sort_order if r.category else 0, r.category_id))
        category_scores = [r.to_dict() for r in results]
    history = (
        s.query(Assessment)
        .filter(Assessment.user_id == user.id)
        .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .limit(10)
        .all()
    )
    return {
        "latest": latest.to_dict() if latest else None,
        "category_scores": category_scores,
        "history": [a.to_dict() for a in history],
    }


def featured_tools(s: "Session", limit: int = 6) -> list[AiTool]:
    return (
        s.query(AiTool)
        .filter(
            AiTool.is_featured.is_(True),
            AiTool.is_active.is_(True),
            AiTool.is_public.is_(True),
            AiTool.status == "active",
        )
        .order_by(AiTool.rating_average.desc(), AiTool.usage_count.desc(), AiTool.id.asc())
        .limit(limit)
        .all()
    )


def recent_tool_usage(s: "Session", user: User, limit: int = 5) -> list[ToolUsage]:
    return (
        s.query(ToolUsage)
        .filter(ToolUsage.user_id == user.id)
        .order_by(ToolUsage.created_at.desc(), ToolUsage.id.desc())
        .limit(limit)
        .all()
    )


def featured_prompts(s: "Session", limit: int = 3) -> list[Prompt]:
    return (
        s.query(Prompt)
        .filter(Prompt.is_featured.is_(True), Prompt.is_public.is_(True), Prompt.status == "active")
        .order_by(Prompt.rating_average.desc(), Prompt.usage_count.desc(), Prompt.id.asc())
        .limit(limit)
        .all()
    )


def collections(s: "Session", user: User) -> list[dict]:
    rows = (
        s.query(PromptCollection)
        .filter(PromptCollection.user_id == user.id)
        .order_by(PromptCollection.created_at.desc(), PromptCollection.id.desc())
        .all()
    )
    return [{**c.to_dict(), "prompt_count": len(c.items)} for c in rows]


def active_consultations(s: "Session", user: User) -> list[Consultation]:
    """Open requests, most urgent first and newest first within an urgency."""
    rows = (
        s.query(Consultation)
        .filter(Consultation.user_id == user.id, Consultation.status.notin_(CLOSED_STATUSES))
        .order_by(Consultation.created_at.desc(), Consultation.id.desc())
        .all()
    )
    # stable sort keeps the created_at order inside each urgency
    return sorted(rows, key=lambda c: URGENCY_RANK.get(c.urgency, len(URGENCY_RANK) + 1))


def recent_activity(s: "Session", user: User, limit: int = ACTIVITY_LIMIT) -> list[dict]:
    events: list[tuple[datetime, dict]] = []

    assessments = (
        s.query(Assessment)
        .filter(Assessment.user_id == user.id)
        .order_by(Assessment.created_at.desc())
        .limit(limit)
        .all()
    )
    for a in assessments:
        events.append((a.created_at, {
            "type": "assessment",
            "entity_id": a.id,
            "title": a.title or "AI Readiness Assessment",
            "description": ASSESSMENT_ACTIVITY.get(a.status, f"Assessment {a.status}"),
        }))

    for u in recent_tool_usage(s, user, limit=limit):
        events.append((u.created_at, {
            "type": "tool",
            "entity_id": u.id,
            "title": u.tool.name if u.tool else None,
            "description": "Used tool",
        }))

    consultations = (
        s.query(Consultation)
        .filter(Consultation.user_id == user.id)
        .order_by(Consultation.created_at.desc())
        .limit(limit)
        .all()
    )
    for c in consultations:
        events.append((c.created_at, {
            "type": "consultation",
            "entity_id": c.id,
            "title": c.subject,
            "description": CONSULTATION_ACTIVITY.get(c.status, f"Consultation {c.status}"),
        }))

    events.sort(key=lambda e: e[0], reverse=True)
    return [{**item, "created_at": iso(at)} for at, item in events[:limit]]
