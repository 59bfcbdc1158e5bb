from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.modules.consultations.service import get_participant_consultation
from app.aigency.modules.messages.schemas import MarkReadIn, MessageSendIn
from app.aigency.modules.messages.service import (
    consultation_history,
    delete_message,
    get_message,
    list_messages,
    mark_read,
    send_message,
    unread_count,
    user_consultation_stats,
)
from app.aigency.rbac import login_user_required
from app.aigency.utils import ok, paging_args, parse_int, request_payload
from app.aigency.validation import validate_payload

# Shares the /consultations prefix with the consultations blueprint.
bp = Blueprint("messages", __name__)


@bp.get("/<int:consultation_id>/messages")
def messages_list(consultation_id: int):
    s = db_session()
    viewer = login_user_required()
    c = get_participant_consultation(s, consultation_id, viewer)
    rows, has_more = list_messages(
        s,
        c,
        limit=parse_int(request.args.get("limit"), 50) or 50,
        before_id=parse_int(request.args.get("before_id")),
    )
    return ok(messages=[m.to_dict() for m in rows], has_more=has_more)


@bp.post("/<int:consultation_id>/messages")
def messages_send(consultation_id: int):
    s = db_session()
    actor = login_user_required()
    c = get_participant_consultation(s, consultation_id, actor)
    data = validate_payload(MessageSendIn, request_payload())
    m = send_message(s, c, data, actor)
    s.commit()
    return ok(message=m.to_dict()), 201


@bp.post("/<int:consultation_id>/messages/read")
def messages_mark_read(consultation_id: int):
    s = db_session()
    actor = login_user_required()
    c = get_participant_consultation(s, consultation_id, actor)
    data = validate_payload(MarkReadIn, request_payload())
    marked = mark_read(s, c, actor, data.message_ids)
    s.commit()
    return ok(marked=marked)


@bp.get("/<int:consultation_id>/messages/unread-count")
def messages_unread_count(consultation_id: int):
    s = db_session()
    viewer = login_user_required()
    c = get_participant_consultation(s, consultation_id, viewer)
    return ok(count=unread_count(s, c, viewer))


@bp.post("/messages/<int:message_id>/delete")
def messages_delete(message_id: int):
    s = db_session()
    actor = login_user_required()
    delete_message(s, get_message(s, message_id), actor)
    s.commit()
    return ok(deleted=message_id)


@bp.get("/history")
def consultations_history():
    s = db_session()
    viewer = login_user_required()
    limit, offset = paging_args(default_limit=20)
    status = (request.args.get("status") or "").strip() or None
    items, total = consultation_history(s, viewer, status=status, limit=limit, offset=offset)
    return ok(consultations=items, total=total, limit=limit, offset=offset)


@bp.get("/my-stats")
def consultations_my_stats():
    viewer = login_user_required()
    return ok(stats=user_consultation_stats(db_session(), viewer))
