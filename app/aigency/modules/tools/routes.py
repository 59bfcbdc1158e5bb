from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.errors import NotFound
from app.aigency.modules.tools.models import AiTool
from app.aigency.modules.tools.schemas import ToolCategoryIn, ToolCreateIn, ToolRatingIn, ToolUpdateIn, ToolUsageIn
from app.aigency.modules.tools.service import (
    create_category,
    create_tool,
    delete_tool,
    get_tool,
    list_tools,
    rate_tool,
    recommended_tools,
    toggle_tool_active,
    tools_by_category,
    track_usage,
    update_tool,
    usage_history,
)
from app.aigency.rbac import current_user, login_user_required, require_permission
from app.aigency.security import csrf_exempt
from app.aigency.utils import ok, paging_args, parse_bool, parse_int, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("tools", __name__)


def _tool_or_404(tool_id: int) -> AiTool:
    tool = db_session().get(AiTool, tool_id)
    if not tool:
        raise NotFound("Tool")
    return tool


@bp.get("")
def tools_list():
    s = db_session()
    limit, offset = paging_args()
    tools, total = list_tools(
        s,
        current_user(),
        category_id=parse_int(request.args.get("category_id")),
        tool_type=(request.args.get("tool_type") or "").strip() or None,
        status=(request.args.get("status") or "").strip() or None,
        is_active=parse_bool(request.args.get("is_active")),
        is_public=parse_bool(request.args.get("is_public")),
        is_featured=parse_bool(request.args.get("is_featured")),
        created_by=parse_int(request.args.get("created_by")),
        search=(request.args.get("q") or "").strip() or None,
        limit=limit,
        offset=offset,
    )
    return ok(tools=[t.to_dict() for t in tools], total=total, limit=limit, offset=offset)


@bp.get("/by-category")
def tools_grouped():
    return ok(categories=tools_by_category(db_session(), current_user()))


@bp.get("/recommended")
def tools_recommended():
    limit = parse_int(request.args.get("limit"), 6) or 6
    tools = recommended_tools(db_session(), current_user(), limit=max(1, min(limit, 50)))
    return ok(tools=[t.to_dict() for t in tools])


@bp.get("/<int:tool_id>")
def tools_detail(tool_id: int):
    return ok(tool=get_tool(db_session(), tool_id, current_user()).to_dict())


@bp.post("")
@require_permission("tools.manage")
def tools_create():
    s = db_session()
    data = validate_payload(ToolCreateIn, request_payload())
    tool = create_tool(s, data, current_user())
    s.commit()
    return ok(tool=tool.to_dict()), 201


@bp.post("/<int:tool_id>")
@require_permission("tools.manage")
def tools_update(tool_id: int):
    s = db_session()
    tool = _tool_or_404(tool_id)
    data = validate_payload(ToolUpdateIn, request_payload())
    update_tool(s, tool, data, current_user())
    s.commit()
    return ok(tool=tool.to_dict())


@bp.post("/<int:tool_id>/toggle-active")
@require_permission("tools.manage")
def tools_toggle_active(tool_id: int):
    s = db_session()
    tool = toggle_tool_active(s, _tool_or_404(tool_id), current_user())
    s.commit()
    return ok(tool=tool.to_dict())


@bp.post("/<int:tool_id>/delete")
@require_permission("tools.manage")
def tools_delete(tool_id: int):
    s = db_session()
    delete_tool(s, _tool_or_404(tool_id), current_user())
    s.commit()
    return ok(deleted=tool_id)


@bp.post("/categories")
@require_permission("tools.manage")
def categories_create():
    s = db_session()
    data = validate_payload(ToolCategoryIn, request_payload())
    cat = create_category(s, data, current_user())
    s.commit()
    return ok(category=cat.to_dict()), 201


@bp.post("/<int:tool_id>/usage")
@csrf_exempt
def tools_track_usage(tool_id: int):
    s = db_session()
    tool = get_tool(s, tool_id, current_user())
    data = validate_payload(ToolUsageIn, request_payload())
    usage = track_usage(s, tool, data, current_user())
    s.commit()
    return ok(recorded=usage is not None, usage_count=tool.usage_count)


@bp.get("/usage")
def tools_usage_history():
    viewer = login_user_required()
    user_id = parse_int(request.args.get("user_id"), viewer.id) or viewer.id
    rows = usage_history(db_session(), user_id, viewer)
    return ok(usage=[u.to_dict() for u in rows])


@bp.post("/<int:tool_id>/rate")
def tools_rate(tool_id: int):
    s = db_session()
    user = login_user_required()
    data = validate_payload(ToolRatingIn, request_payload())
    tool = rate_tool(s, get_tool(s, tool_id, user), data.rating, data.review, user)
    s.commit()
    return ok(rating_average=round(tool.rating_average, 2), rating_count=tool.rating_count)
