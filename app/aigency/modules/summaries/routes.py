from __future__ import annotations

from flask import Blueprint

from app.aigency.db import db_session
from app.aigency.modules.summaries.schemas import SummaryCreateIn, SummaryUpdateIn
from app.aigency.modules.summaries.service import (
    archive_summary,
    create_summary,
    current_summary,
    get_summary,
    list_my_summaries,
    toggle_action_item,
    update_summary,
)
from app.aigency.rbac import login_user_required
from app.aigency.utils import ok, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("summaries", __name__)


@bp.post("")
def summaries_create():
    s = db_session()
    actor = login_user_required()
    data = validate_payload(SummaryCreateIn, request_payload())
    summary = create_summary(s, data, actor)
    s.commit()
    return ok(summary=summary.to_dict()), 201


@bp.get("/mine")
def summaries_mine():
    viewer = login_user_required()
    return ok(summaries=[x.to_dict() for x in list_my_summaries(db_session(), viewer)])


@bp.get("/consultation/<int:consultation_id>")
def summaries_for_consultation(consultation_id: int):
    viewer = login_user_required()
    summary = current_summary(db_session(), consultation_id, viewer)
    return ok(summary=summary.to_dict() if summary else None)


@bp.post("/<int:summary_id>")
def summaries_update(summary_id: int):
    s = db_session()
    actor = login_user_required()
    summary = get_summary(s, summary_id)
    data = validate_payload(SummaryUpdateIn, request_payload())
    update_summary(s, summary, data, actor)
    s.commit()
    return ok(summary=summary.to_dict())


@bp.post("/<int:summary_id>/action-items/<int:index>/toggle")
def summaries_toggle_action_item(summary_id: int, index: int):
    s = db_session()
    actor = login_user_required()
    item = toggle_action_item(s, get_summary(s, summary_id), index, actor)
    s.commit()
    return ok(action_item=item)


@bp.post("/<int:summary_id>/archive")
def summaries_archive(summary_id: int):
    s = db_session()
    actor = login_user_required()
    summary = archive_summary(s, get_summary(s, summary_id), actor)
    s.commit()
    return ok(summary=summary.to_dict())
