from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.aigency.db import db_session
from app.aigency.modules.contact.schemas import ContactIn, ContactStatusIn
from app.aigency.modules.contact.service import delete_message, get_message, list_messages, submit_message, update_status
from app.aigency.rbac import current_user, require_permission
from app.aigency.security import csrf_exempt
from app.aigency.utils import ok, paging_args, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("contact", __name__)


@bp.post("")
@csrf_exempt
def contact_submit():
    s = db_session()
    data = validate_payload(ContactIn, request_payload())
    msg = submit_message(s, data, current_user())
    s.commit()
    current_app.logger.info("Contact message received (id=%s request_id=%s)", msg.id, getattr(g, "request_id", None))
    return ok(id=msg.id, message="Thanks for reaching out. We will get back to you shortly."), 201


@bp.get("/messages")
@require_permission("contacts.manage")
def messages_list():
    limit, offset = paging_args()
    rows, total = list_messages(
        db_session(),
        status=(request.args.get("status") or "").strip() or None,
        limit=limit,
        offset=offset,
    )
    return ok(messages=[m.to_dict() for m in rows], total=total, limit=limit, offset=offset)


@bp.post("/messages/<int:message_id>/status")
@require_permission("contacts.manage")
def messages_status(message_id: int):
    s = db_session()
    data = validate_payload(ContactStatusIn, request_payload())
    msg = update_status(s, get_message(s, message_id), data.status, data.notes, current_user())
    s.commit()
    return ok(message=msg.to_dict())


@bp.post("/messages/<int:message_id>/delete")
@require_permission("contacts.manage")
def messages_delete(message_id: int):
    s = db_session()
    delete_message(s, get_message(s, message_id), current_user())
    s.commit()
    return ok(deleted=message_id)
