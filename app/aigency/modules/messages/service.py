from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.aigency.audit import record_event
from app.aigency.errors import NotAuthorized, NotFound
from app.aigency.models import User
from app.aigency.modules.consultations.models import Consultation
from app.aigency.modules.consultations.service import ACTIVE_STATUSES, is_admin
from app.aigency.modules.messages.models import ConsultationMessage
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.modules.messages.schemas import MessageSendIn

MAX_MESSAGE_PAGE = 100


def room_path(consultation_id: int) -> str:
    return f"/consultation/room/{consultation_id}"


def _from_others(reader: User):
    # messages whose sender account was removed still count as unread for everyone
    return or_(ConsultationMessage.sender_id.is_(None), ConsultationMessage.sender_id != reader.id)


def send_message(s: "Session", c: Consultation, data: "MessageSendIn", sender: User) -> ConsultationMessage:
    now = datetime.utcnow()
    m = ConsultationMessage(
        consultation_id=c.id,
        sender_id=sender.id,
        content=data.content,
        message_type=data.message_type,
        details=data.metadata,
        is_read=False,
        created_at=now,
        updated_at=now,
    )
    m.sender = sender
    s.add(m)
    s.flush()
    c.updated_at = now
    record_event(
        s,
        actor=sender,
        action="consultation_message.send",
        entity_type="ConsultationMessage",
        entity_id=str(m.id),
        metadata={"consultation_id": c.id, "message_type": m.message_type},
    )
    revalidate_path(room_path(c.id))
    return m


def list_messages(
    s: "Session", c: Consultation, *, limit: int = 50, before_id: int | None = None
) -> tuple[list[ConsultationMessage], bool]:
    """
    One page of the conversation, oldest first.

    Pages walk backwards: pass the id of the oldest message already shown as
    `before_id` to get the page before it. `has_more` says whether older
    messages remain.
    """
    limit = max(1, min(limit, MAX_MESSAGE_PAGE))
    q = s.query(ConsultationMessage).filter(ConsultationMessage.consultation_id == c.id)
    if before_id is not None:
        q = q.filter(ConsultationMessage.id < before_id)
    rows = q.order_by(ConsultationMessage.id.desc()).limit(limit + 1).all()
    has_more = len(rows) > limit
    rows = rows[:limit]
    rows.reverse()
    return rows, has_more


def mark_read(s: "Session", c: Consultation, reader: User, message_ids: list[int] | None = None) -> int:
    q = s.query(ConsultationMessage).filter(
        ConsultationMessage.consultation_id == c.id,
        ConsultationMessage.is_read.is_(False),
        _from_others(reader),
    )
    if message_ids is not None:
        if not message_ids:
            return 0
        q = q.filter(ConsultationMessage.id.in_(message_ids))
    now = datetime.utcnow()
    rows = q.all()
    for m in rows:
        m.is_read = True
        m.read_at = now
    return len(rows)


def unread_count(s: "Session", c: Consultation, reader: User) -> int:
    return (
        s.query(ConsultationMessage)
        .filter(
            ConsultationMessage.consultation_id == c.id,
            ConsultationMessage.is_read.is_(False),
            _from_others(reader),
        )
        .count()
    )


def get_message(s: "Session", message_id: int) -> ConsultationMessage:
    m = s.get(ConsultationMessage, message_id)
    if not m:
        raise NotFound("Message")
    return m


def delete_message(s: "Session", m: ConsultationMessage, actor: User) -> None:
    if m.sender_id != actor.id and not is_admin(actor):
        raise NotAuthorized("Can only delete your own messages.")
    record_event(
        s,
        actor=actor,
        action="consultation_message.delete",
        entity_type="ConsultationMessage",
        entity_id=str(m.id),
        metadata={"consultation_id": m.consultation_id, "sender_id": m.sender_id},
    )
    revalidate_path(room_path(m.consultation_id))
    s.delete(m)


def _message_counts(s: "Session", consultation_ids: list[int], reader: User) -> tuple[dict, dict]:
    if not consultation_ids:
        return {}, {}
    totals = {
        cid: (count, last_at)
        for cid, count, last_at in s.query(
            ConsultationMessage.consultation_id,
            func.count(ConsultationMessage.id),
            func.max(ConsultationMessage.created_at),
        )
        .filter(ConsultationMessage.consultation_id.in_(consultation_ids))
        .group_by(ConsultationMessage.consultation_id)
        .all()
    }
    unread = dict(
        s.query(ConsultationMessage.consultation_id, func.count(ConsultationMessage.id))
        .filter(
            ConsultationMessage.consultation_id.in_(consultation_ids),
            ConsultationMessage.is_read.is_(False),
            _from_others(reader),
        )
        .group_by(ConsultationMessage.consultation_id)
        .all()
    )
    return totals, unread


def consultation_history(
    s: "Session", user: User, *, status: str | None = None, limit: int = 20, offset: int = 0
) -> tuple[list[dict], int]:
    """The user's own consultations, most recently active first, with message counters."""
    q = s.query(Consultation).filter(Consultation.user_id == user.id)
    if status:
        q = q.filter(Consultation.status == status)
    total = q.count()
    rows = q.order_by(Consultation.updated_at.desc(), Consultation.id.desc()).offset(offset).limit(limit).all()

    totals, unread = _message_counts(s, [c.id for c in rows], user)
    items = []
    for c in rows:
        count, last_at = totals.get(c.id, (0, None))
        d = c.to_dict()
        d["message_count"] = count
        d["unread_count"] = unread.get(c.id, 0)
        d["last_message_at"] = last_at.isoformat() if last_at else None
        d["consultant"] = (
            {"id": c.consultant.id, "name": c.consultant.display_name, "email": c.consultant.email}
            if c.consultant
            else None
        )
        items.append(d)
    return items, total


def user_consultation_stats(s: "Session", user: User) -> dict:
    rows = s.query(Consultation).filter(Consultation.user_id == user.id).all()
    ids = [c.id for c in rows]
    total_messages = 0
    unread_messages = 0
    if ids:
        total_messages = s.query(ConsultationMessage).filter(ConsultationMessage.consultation_id.in_(ids)).count()
        unread_messages = (
            s.query(ConsultationMessage)
            .filter(
                ConsultationMessage.consultation_id.in_(ids),
                ConsultationMessage.is_read.is_(False),
                _from_others(user),
            )
            .count()
        )
    return {
        "total_consultations": len(rows),
        "active_consultations": sum(1 for c in rows if c.status in ACTIVE_STATUSES),
        "completed_consultations": sum(1 for c in rows if c.status == "completed"),
        "total_messages": total_messages,
        "unread_messages": unread_messages,
    }
