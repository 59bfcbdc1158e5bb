from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import Conflict, NotAuthorized, NotFound, ValidationFailed
from app.aigency.models import User
from app.aigency.modules.consultations.models import Consultation
from app.aigency.modules.consultations.service import get_participant_consultation, is_admin, participant_role
from app.aigency.modules.messages.service import room_path
from app.aigency.modules.summaries.models import ConsultationSummary
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.modules.summaries.schemas import ActionItem, SummaryCreateIn, SummaryUpdateIn

LIST_FIELDS = ("action_items", "key_decisions", "follow_up_tasks", "resources_shared")


def _items(items: list["ActionItem"]) -> list[dict]:
    return [i.model_dump(mode="json") for i in items]


def _live_summary(s: "Session", consultation_id: int, *, exclude_id: int | None = None) -> ConsultationSummary | None:
    q = s.query(ConsultationSummary).filter(
        ConsultationSummary.consultation_id == consultation_id,
        ConsultationSummary.status != "archived",
    )
    if exclude_id is not None:
        q = q.filter(ConsultationSummary.id != exclude_id)
    return q.order_by(ConsultationSummary.created_at.desc(), ConsultationSummary.id.desc()).first()


def _ensure_consultant_side(c: Consultation, actor: User, message: str) -> None:
    if participant_role(c, actor) not in ("admin", "consultant"):
        raise NotAuthorized(message)


def create_summary(s: "Session", data: "SummaryCreateIn", actor: User) -> ConsultationSummary:
    c = get_participant_consultation(s, data.consultation_id, actor)
    _ensure_consultant_side(c, actor, "Only consultants can create summaries.")
    if _live_summary(s, c.id):
        raise Conflict("A summary already exists for this consultation. Edit or archive it first.")

    now = datetime.utcnow()
    summary = ConsultationSummary(
        consultation_id=c.id,
        created_by_id=actor.id,
        summary=data.summary or None,
        notes=data.notes or None,
        action_items=_items(data.action_items),
        key_decisions=list(data.key_decisions),
        follow_up_tasks=list(data.follow_up_tasks),
        resources_shared=list(data.resources_shared),
        status="draft",
        created_at=now,
        updated_at=now,
    )
    summary.consultation = c
    summary.created_by = actor
    s.add(summary)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="consultation_summary.create",
        entity_type="ConsultationSummary",
        entity_id=str(summary.id),
        metadata={"consultation_id": c.id, "action_items": len(summary.action_items)},
    )
    revalidate_path(room_path(c.id))
    return summary


def current_summary(s: "Session", consultation_id: int, viewer: User) -> ConsultationSummary | None:
    c = get_participant_consultation(s, consultation_id, viewer)
    return _live_summary(s, c.id)


def get_summary(s: "Session", summary_id: int) -> ConsultationSummary:
    summary = s.get(ConsultationSummary, summary_id)
    if not summary:
        raise NotFound("Summary")
    return summary


def update_summary(s: "Session", summary: ConsultationSummary, data: "SummaryUpdateIn", actor: User) -> ConsultationSummary:
    c = summary.consultation
    allowed = is_admin(actor) or summary.created_by_id == actor.id or c.assigned_consultant_id == actor.id
    if not allowed:
        raise NotAuthorized("Not authorized to update this summary.")

    updates = data.model_dump(exclude_unset=True)
    for key in (*LIST_FIELDS, "status"):
        if key in updates and updates[key] is None:
            updates.pop(key)
    if "action_items" in updates:
        updates["action_items"] = _items(data.action_items or [])

    reviving = summary.status == "archived" and updates.get("status") in ("draft", "final")
    if reviving and _live_summary(s, c.id, exclude_id=summary.id):
        raise Conflict("A summary already exists for this consultation. Edit or archive it first.")

    changes = apply_changes(summary, updates)
    if changes:
        summary.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="consultation_summary.update",
            entity_type="ConsultationSummary",
            entity_id=str(summary.id),
            metadata={"fields": sorted(changes), "status": summary.status},
        )
    revalidate_path(room_path(c.id))
    return summary


def toggle_action_item(s: "Session", summary: ConsultationSummary, index: int, actor: User) -> dict:
    if participant_role(summary.consultation, actor) is None:
        raise NotAuthorized("Not authorized to access this consultation.")
    items = [dict(i) for i in summary.action_items or []]
    if index < 0 or index >= len(items):
        raise ValidationFailed(["Invalid action item index"])

    items[index]["completed"] = not bool(items[index].get("completed"))
    # reassign so the JSON column is flagged dirty
    summary.action_items = items
    summary.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="consultation_summary.toggle_action_item",
        entity_type="ConsultationSummary",
        entity_id=str(summary.id),
        metadata={"index": index, "completed": items[index]["completed"]},
    )
    revalidate_path(room_path(summary.consultation_id))
    return items[index]


def archive_summary(s: "Session", summary: ConsultationSummary, actor: User) -> ConsultationSummary:
    if not is_admin(actor) and summary.consultation.assigned_consultant_id != actor.id:
        raise NotAuthorized("Only consultants can archive summaries.")
    summary.status = "archived"
    summary.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="consultation_summary.archive",
        entity_type="ConsultationSummary",
        entity_id=str(summary.id),
    )
    revalidate_path(room_path(summary.consultation_id))
    return summary


def list_my_summaries(s: "Session", user: User) -> list[ConsultationSummary]:
    """Live summaries on consultations the user requested or is assigned to."""
    return (
        s.query(ConsultationSummary)
        .join(Consultation, ConsultationSummary.consultation_id == Consultation.id)
        .filter(
            or_(Consultation.user_id == user.id, Consultation.assigned_consultant_id == user.id),
            ConsultationSummary.status != "archived",
        )
        .order_by(ConsultationSummary.updated_at.desc(), ConsultationSummary.id.desc())
        .all()
    )
