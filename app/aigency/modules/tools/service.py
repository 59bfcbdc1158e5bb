from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import Conflict, NotAuthorized, NotFound, ValidationFailed
from app.aigency.modules.tools.models import AiTool, ToolCategory, ToolRating, ToolUsage
from app.aigency.rbac import user_has_permission
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.aigency.models import User
    from app.aigency.modules.tools.schemas import ToolCategoryIn, ToolCreateIn, ToolUpdateIn, ToolUsageIn


# Assessment categories scoring below this point steer recommendations.
LOW_SCORE_THRESHOLD = 6
RECOMMEND_BY_WEAK_CATEGORY = (
    (("Data & Information", "Data Management"), "analysis"),
    (("Business Operations", "Process Automation"), "automation"),
)


def _touch_paths(tool_id: int | None = None) -> None:
    revalidate_path("/solutions", "/admin/tools")
    if tool_id:
        revalidate_path(f"/solutions/{tool_id}")


def _check_category(s: "Session", category_id: int | None) -> None:
    if category_id is not None and not s.get(ToolCategory, category_id):
        raise ValidationFailed([f"category_id: unknown category {category_id}"])


def _visible(q: "Query", viewer: "User | None") -> "Query":
    if user_has_permission(viewer, "tools.manage"):
        return q
    return q.filter(AiTool.is_public.is_(True), AiTool.is_active.is_(True))


def list_tools(
    s: "Session",
    viewer: "User | None",
    *,
    category_id: int | None = None,
    tool_type: str | None = None,
    status: str | None = None,
    is_active: bool | None = None,
    is_public: bool | None = None,
    is_featured: bool | None = None,
    created_by: int | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AiTool], int]:
    q = _visible(s.query(AiTool), viewer)
    if category_id is not None:
        q = q.filter(AiTool.category_id == category_id)
    if tool_type:
        q = q.filter(AiTool.tool_type == tool_type)
    if status:
        q = q.filter(AiTool.status == status)
    if is_active is not None:
        q = q.filter(AiTool.is_active.is_(is_active))
    if is_public is not None:
        q = q.filter(AiTool.is_public.is_(is_public))
    if is_featured is not None:
        q = q.filter(AiTool.is_featured.is_(is_featured))
    if created_by is not None:
        q = q.filter(AiTool.created_by_user_id == created_by)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(func.lower(AiTool.name).like(like), func.lower(AiTool.description).like(like)))
    total = q.count()
    tools = q.order_by(AiTool.is_featured.desc(), AiTool.name.asc()).offset(offset).limit(limit).all()
    return tools, total


def tools_by_category(s: "Session", viewer: "User | None") -> list[dict]:
    tools = _visible(s.query(AiTool), viewer).order_by(AiTool.name.asc()).all()
    cats = s.query(ToolCategory).order_by(ToolCategory.sort_order.asc(), ToolCategory.name.asc()).all()
    grouped: dict[int | None, list[AiTool]] = {}
    for t in tools:
        grouped.setdefault(t.category_id, []).append(t)
    out = [
        {"category": c.to_dict(), "tools": [t.to_dict() for t in grouped.get(c.id, [])]}
        for c in cats
    ]
    if grouped.get(None):
        out.append({"category": None, "tools": [t.to_dict() for t in grouped[None]]})
    return out


def get_tool(s: "Session", tool_id: int, viewer: "User | None" = None) -> AiTool:
    tool = s.get(AiTool, tool_id)
    if not tool:
        raise NotFound("Tool")
    if not (tool.is_public and tool.is_active) and not user_has_permission(viewer, "tools.manage"):
        raise NotFound("Tool")
    return tool


def create_tool(s: "Session", data: "ToolCreateIn", actor: "User") -> AiTool:
    _check_category(s, data.category_id)
    now = datetime.utcnow()
    tool = AiTool(
        **data.model_dump(),
        usage_count=0,
        rating_average=0.0,
        rating_count=0,
        created_by_user_id=actor.id,
        created_at=now,
        updated_at=now,
    )
    s.add(tool)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="tool.create",
        entity_type="AiTool",
        entity_id=str(tool.id),
        metadata={"name": tool.name, "tool_type": tool.tool_type, "status": tool.status},
    )
    _touch_paths(tool.id)
    return tool


def update_tool(s: "Session", tool: AiTool, data: "ToolUpdateIn", actor: "User") -> AiTool:
    updates = data.model_dump(exclude_unset=True)
    for key in ("name", "tool_type", "complexity_level", "pricing_model", "status", "is_featured", "is_public", "is_active", "tags"):
        if key in updates and updates[key] is None:
            updates.pop(key)
    if "category_id" in updates:
        _check_category(s, updates["category_id"])
    changes = apply_changes(tool, updates)
    if changes:
        tool.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="tool.update",
            entity_type="AiTool",
            entity_id=str(tool.id),
            metadata={"changes": changes},
        )
    _touch_paths(tool.id)
    return tool


def toggle_tool_active(s: "Session", tool: AiTool, actor: "User") -> AiTool:
    tool.is_active = not tool.is_active
    tool.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="tool.activate" if tool.is_active else "tool.deactivate",
        entity_type="AiTool",
        entity_id=str(tool.id),
        metadata={"name": tool.name},
    )
    _touch_paths(tool.id)
    return tool


def delete_tool(s: "Session", tool: AiTool, actor: "User") -> None:
    record_event(
        s,
        actor=actor,
        action="tool.delete",
        entity_type="AiTool",
        entity_id=str(tool.id),
        metadata={"name": tool.name},
    )
    _touch_paths(tool.id)
    s.query(ToolUsage).filter(ToolUsage.tool_id == tool.id).delete(synchronize_session=False)
    s.query(ToolRating).filter(ToolRating.tool_id == tool.id).delete(synchronize_session=False)
    s.delete(tool)


def create_category(s: "Session", data: "ToolCategoryIn", actor: "User") -> ToolCategory:
    if s.query(ToolCategory.id).filter(func.lower(ToolCategory.name) == data.name.lower()).first():
        raise Conflict(f"A category named '{data.name}' already exists.")
    cat = ToolCategory(**data.model_dump())
    s.add(cat)
    s.flush()
    record_event(s, actor=actor, action="tool_category.create", entity_type="ToolCategory", entity_id=str(cat.id), metadata={"name": cat.name})
    _touch_paths()
    return cat


def track_usage(s: "Session", tool: AiTool, data: "ToolUsageIn", user: "User | None") -> ToolUsage | None:
    """Anonymous usage is accepted but not recorded."""
    if user is None:
        return None
    usage = ToolUsage(user_id=user.id, tool_id=tool.id, **data.model_dump())
    s.add(usage)
    tool.usage_count = (tool.usage_count or 0) + 1
    s.flush()
    return usage


def usage_history(s: "Session", user_id: int, viewer: "User", limit: int = 100) -> list[ToolUsage]:
    if viewer.id != user_id and not user_has_permission(viewer, "tools.manage"):
        raise NotAuthorized("You can only view your own usage.")
    return (
        s.query(ToolUsage)
        .filter(ToolUsage.user_id == user_id)
        .order_by(ToolUsage.created_at.desc(), ToolUsage.id.desc())
        .limit(limit)
        .all()
    )


def _weak_assessment_categories(s: "Session", user: "User") -> list[str] | None:
    """Names of low-scoring categories from the user's latest completed assessment, None if there is none."""
    from app.aigency.modules.assessments.models import Assessment, AssessmentResult

    latest = (
        s.query(Assessment)
        .filter(Assessment.user_id == user.id, Assessment.status == "completed")
        .order_by(Assessment.completed_at.desc(), Assessment.id.desc())
        .first()
    )
    if not latest:
        return None
    results = s.query(AssessmentResult).filter(AssessmentResult.assessment_id == latest.id).all()
    return [r.category.name for r in results if r.category and r.category_score < LOW_SCORE_THRESHOLD]


def recommended_tools(s: "Session", user: "User | None", limit: int = 6) -> list[AiTool]:
    base = s.query(AiTool).filter(
        AiTool.status == "active",
        AiTool.is_public.is_(True),
        AiTool.is_active.is_(True),
    )
    popular = base.order_by(AiTool.usage_count.desc(), AiTool.id.asc())
    if user is None:
        return popular.limit(limit).all()

    weak = _weak_assessment_categories(s, user)
    narrowed = base.filter(AiTool.is_featured.is_(True))
    if weak:
        for names, tool_type in RECOMMEND_BY_WEAK_CATEGORY:
            if any(n in weak for n in names):
                narrowed = base.filter(AiTool.tool_type == tool_type)
                break
    tools = narrowed.order_by(AiTool.usage_count.desc(), AiTool.id.asc()).limit(limit).all()
    return tools or popular.limit(limit).all()


def rate_tool(s: "Session", tool: AiTool, rating: int, review: str | None, user: "User") -> AiTool:
    row = s.query(ToolRating).filter(ToolRating.user_id == user.id, ToolRating.tool_id == tool.id).one_or_none()
    if row:
        row.rating = rating
        row.review = review
    else:
        s.add(ToolRating(user_id=user.id, tool_id=tool.id, rating=rating, review=review))
    s.flush()
    avg, count = (
        s.query(func.avg(ToolRating.rating), func.count(ToolRating.id))
        .filter(ToolRating.tool_id == tool.id)
        .one()
    )
    tool.rating_average = float(avg or 0.0)
    tool.rating_count = int(count or 0)
    return tool
