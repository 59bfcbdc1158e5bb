from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.aigency.audit import record_event
from app.aigency.errors import NotFound
from app.aigency.modules.contact.models import ContactMessage
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.models import User
    from app.aigency.modules.contact.schemas import ContactIn


def submit_message(s: "Session", data: "ContactIn", sender: "User | None") -> ContactMessage:
    now = datetime.utcnow()
    msg = ContactMessage(
        user_id=sender.id if sender else None,
        name=data.name,
        email=data.email,
        phone=data.phone or None,
        company=data.company or None,
        subject=data.subject,
        message=data.message,
        status="new",
        created_at=now,
        updated_at=now,
    )
    s.add(msg)
    s.flush()
    record_event(
        s,
        actor=sender,
        action="contact_message.create",
        entity_type="ContactMessage",
        entity_id=str(msg.id),
        metadata={"email": msg.email, "subject": msg.subject},
    )
    revalidate_path("/admin/contacts")
    return msg


def list_messages(
    s: "Session", *, status: str | None = None, limit: int = 50, offset: int = 0
) -> tuple[list[ContactMessage], int]:
    q = s.query(ContactMessage)
    if status:
        q = q.filter(ContactMessage.status == status)
    total = q.count()
    rows = q.order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def get_message(s: "Session", message_id: int) -> ContactMessage:
    msg = s.get(ContactMessage, message_id)
    if not msg:
        raise NotFound("Message")
    return msg


def update_status(s: "Session", msg: ContactMessage, status: str, notes: str | None, actor: "User") -> ContactMessage:
    old = msg.status
    msg.status = status
    if notes is not None:
        msg.notes = notes or None
    msg.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="contact_message.status",
        entity_type="ContactMessage",
        entity_id=str(msg.id),
        metadata={"from": old, "to": status},
    )
    revalidate_path("/admin/contacts")
    return msg


def delete_message(s: "Session", msg: ContactMessage, actor: "User") -> None:
    record_event(
        s,
        actor=actor,
        action="contact_message.delete",
        entity_type="ContactMessage",
        entity_id=str(msg.id),
        metadata={"email": msg.email},
    )
    revalidate_path("/admin/contacts")
    s.delete(msg)
