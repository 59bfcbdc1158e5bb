from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import NotAuthorized, NotFound, ValidationFailed
from app.aigency.models import User
from app.aigency.modules.consultations.models import Consultation
from app.aigency.rbac import ensure_permission, user_has_permission, user_has_role
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.modules.consultations.schemas import ConsultationCreateIn, ConsultationUpdateIn

CONSULTATION_TYPES = ["strategy", "implementation", "assessment", "training", "other"]
URGENCY_LEVELS = ["critical", "high", "medium", "low"]
STATUSES = ["pending", "in_review", "scheduled", "in_progress", "completed", "cancelled"]
ACTIVE_STATUSES = ("in_review", "scheduled", "in_progress")

URGENCY_PRIORITY = {"low": 1, "medium": 2, "high": 3, "critical": 4}
TYPE_PRIORITY_BONUS = {"strategy": 2, "implementation": 1}

SORT_FIELDS = {
    "created_at": Consultation.created_at,
    "scheduled_at": Consultation.scheduled_at,
    "priority_score": Consultation.priority_score,
    "urgency": Consultation.priority_score,
}


def priority_score(urgency: str, consultation_type: str) -> int:
    return URGENCY_PRIORITY.get(urgency, 2) + TYPE_PRIORITY_BONUS.get(consultation_type, 0)


def is_admin(user: User | None) -> bool:
    return user_has_permission(user, "consultations.manage")


def is_consultant(user: User | None) -> bool:
    return user_has_role(user, "consultant")


def can_be_assigned(user: User | None) -> bool:
    return user_has_role(user, "consultant") or user_has_role(user, "admin")


def _touch_paths(consultation_id: int | None = None) -> None:
    revalidate_path("/consultations", "/admin/consultations")
    if consultation_id is not None:
        revalidate_path(f"/consultations/{consultation_id}")


def _visible_query(s: "Session", viewer: User, *, include_unassigned: bool):
    q = s.query(Consultation)
    if is_admin(viewer):
        return q
    if is_consultant(viewer):
        clauses = [Consultation.user_id == viewer.id, Consultation.assigned_consultant_id == viewer.id]
        if include_unassigned:
            clauses.append(Consultation.assigned_consultant_id.is_(None))
        return q.filter(or_(*clauses))
    return q.filter(Consultation.user_id == viewer.id)


def _ensure_can_work(c: Consultation, actor: User) -> None:
    if is_admin(actor):
        return
    if is_consultant(actor) and c.assigned_consultant_id == actor.id:
        return
    raise NotAuthorized("Only an admin or the assigned consultant can change this consultation.")


def participant_role(c: Consultation, user: User) -> str | None:
    """Role the user holds in the consultation room: admin, client, consultant or None."""
    if is_admin(user):
        return "admin"
    if c.user_id == user.id:
        return "client"
    if c.assigned_consultant_id is not None and c.assigned_consultant_id == user.id:
        return "consultant"
    return None


def get_participant_consultation(s: "Session", consultation_id: int, user: User) -> Consultation:
    c = s.get(Consultation, consultation_id)
    if not c:
        raise NotFound("Consultation")
    if participant_role(c, user) is None:
        raise NotAuthorized("Not authorized to access this consultation.")
    return c


def create_consultation(s: "Session", data: "ConsultationCreateIn", actor: User) -> Consultation:
    now = datetime.utcnow()
    c = Consultation(
        user_id=actor.id,
        subject=data.subject,
        description=data.description,
        consultation_type=data.consultation_type,
        urgency=data.urgency,
        company_size=data.company_size or None,
        industry=data.industry or None,
        budget_range=data.budget_range or None,
        timeline=data.timeline or None,
        current_ai_usage=data.current_ai_usage or None,
        specific_challenges=data.specific_challenges or None,
        preferred_contact_method=data.preferred_contact_method,
        preferred_times=data.preferred_times,
        status="pending",
        priority_score=priority_score(data.urgency, data.consultation_type),
        follow_up_required=False,
        created_at=now,
        updated_at=now,
    )
    s.add(c)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="consultation.create",
        entity_type="Consultation",
        entity_id=str(c.id),
        metadata={"type": c.consultation_type, "urgency": c.urgency, "priority_score": c.priority_score},
    )
    _touch_paths()
    return c


def list_consultations(
    s: "Session",
    viewer: User,
    *,
    consultation_type: str | None = None,
    urgency: str | None = None,
    status: str | None = None,
    assigned_consultant_id: int | None = None,
    industry: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    descending: bool = True,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Consultation], int]:
    q = _visible_query(s, viewer, include_unassigned=True)
    if consultation_type:
        q = q.filter(Consultation.consultation_type == consultation_type)
    if urgency:
        q = q.filter(Consultation.urgency == urgency)
    if status:
        q = q.filter(Consultation.status == status)
    if assigned_consultant_id is not None:
        q = q.filter(Consultation.assigned_consultant_id == assigned_consultant_id)
    if industry:
        q = q.filter(Consultation.industry.ilike(f"%{industry}%"))
    if date_from:
        q = q.filter(Consultation.created_at >= date_from)
    if date_to:
        q = q.filter(Consultation.created_at <= date_to)
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                Consultation.subject.ilike(like),
                Consultation.description.ilike(like),
                Consultation.specific_challenges.ilike(like),
            )
        )

    total = q.count()
    col = SORT_FIELDS.get(sort_by, Consultation.created_at)
    q = q.order_by(col.desc() if descending else col.asc(), Consultation.id.desc())
    return q.offset(offset).limit(limit).all(), total


def get_consultation(s: "Session", consultation_id: int, viewer: User) -> Consultation:
    c = _visible_query(s, viewer, include_unassigned=False).filter(Consultation.id == consultation_id).one_or_none()
    if not c:
        raise NotFound("Consultation")
    return c


def update_consultation(s: "Session", c: Consultation, data: "ConsultationUpdateIn", actor: User) -> Consultation:
    _ensure_can_work(c, actor)
    updates = data.model_dump(exclude_unset=True)

    for key in ("status", "priority_score", "follow_up_required"):
        if key in updates and updates[key] is None:
            updates.pop(key)

    consultant_id = updates.get("assigned_consultant_id")
    if "assigned_consultant_id" in updates and consultant_id != c.assigned_consultant_id:
        if not is_admin(actor):
            raise NotAuthorized("Only an admin can reassign a consultation.")
        c.consultant = _load_assignable(s, consultant_id) if consultant_id is not None else None

    if updates.get("status") == "completed" and c.status != "completed":
        c.completed_at = datetime.utcnow()

    changes = apply_changes(c, updates)
    if changes:
        c.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="consultation.update",
            entity_type="Consultation",
            entity_id=str(c.id),
            metadata={"changes": {k: v for k, v in changes.items() if k != "consultation_notes"}},
        )
    _touch_paths(c.id)
    return c


def _load_assignable(s: "Session", user_id: int) -> User:
    user = s.get(User, user_id)
    if not user or not user.is_active:
        raise NotFound("Consultant")
    if not can_be_assigned(user):
        raise ValidationFailed(["consultant_id: user must hold the consultant or admin role"])
    return user


def assign_consultant(s: "Session", c: Consultation, consultant_id: int, actor: User) -> Consultation:
    ensure_permission(actor, "consultations.assign")
    consultant = _load_assignable(s, consultant_id)
    previous = c.assigned_consultant_id
    c.consultant = consultant
    c.assigned_consultant_id = consultant.id
    c.status = "in_review"
    c.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="consultation.assign",
        entity_type="Consultation",
        entity_id=str(c.id),
        metadata={"from": previous, "to": consultant.id},
    )
    _touch_paths(c.id)
    return c


def complete_consultation(s: "Session", c: Consultation, actor: User, notes: str | None = None) -> Consultation:
    _ensure_can_work(c, actor)
    now = datetime.utcnow()
    c.status = "completed"
    c.completed_at = now
    if notes:
        c.consultation_notes = notes
    c.updated_at = now
    record_event(s, actor=actor, action="consultation.complete", entity_type="Consultation", entity_id=str(c.id))
    _touch_paths(c.id)
    return c


def delete_consultation(s: "Session", c: Consultation, actor: User) -> None:
    ensure_permission(actor, "consultations.manage")
    record_event(
        s,
        actor=actor,
        action="consultation.delete",
        entity_type="Consultation",
        entity_id=str(c.id),
        metadata={"subject": c.subject, "status": c.status},
    )
    _touch_paths(c.id)
    s.delete(c)


def available_consultants(s: "Session") -> list[User]:
    users = s.query(User).filter(User.is_active.is_(True)).order_by(User.first_name.asc(), User.email.asc()).all()
    return [u for u in users if can_be_assigned(u)]


def count_breakdown(counts: dict[str, int], keys: list[str], total: int) -> list[dict]:
    """Count and share of the total per key; the percentage is left unrounded."""
    return [
        {"key": k, "count": counts.get(k, 0), "percentage": counts.get(k, 0) / total * 100 if total else 0.0}
        for k in keys
    ]


def consultation_stats(s: "Session") -> dict:
    rows = s.query(Consultation).all()
    total = len(rows)

    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    by_urgency: dict[str, int] = {}
    resolution_days: list[float] = []
    for c in rows:
        by_status[c.status] = by_status.get(c.status, 0) + 1
        by_type[c.consultation_type] = by_type.get(c.consultation_type, 0) + 1
        by_urgency[c.urgency] = by_urgency.get(c.urgency, 0) + 1
        if c.status == "completed" and c.completed_at and c.created_at:
            resolution_days.append((c.completed_at - c.created_at).total_seconds() / 86400)

    avg_resolution = round(sum(resolution_days) / len(resolution_days), 1) if resolution_days else 0

    workload = []
    for u in available_consultants(s):
        assigned = [c for c in rows if c.assigned_consultant_id == u.id]
        workload.append(
            {
                "consultant_id": u.id,
                "consultant_name": u.display_name,
                "active_consultations": sum(1 for c in assigned if c.status in ACTIVE_STATUSES),
                "completed_consultations": sum(1 for c in assigned if c.status == "completed"),
            }
        )

    return {
        "total_consultations": total,
        "pending_consultations": by_status.get("pending", 0),
        "in_progress_consultations": by_status.get("in_progress", 0),
        "completed_consultations": by_status.get("completed", 0),
        "cancelled_consultations": by_status.get("cancelled", 0),
        "average_resolution_time": avg_resolution,
        "status_breakdown": [
            {"status": b["key"], "count": b["count"], "percentage": b["percentage"]}
            for b in count_breakdown(by_status, STATUSES, total)
        ],
        "type_breakdown": [
            {"type": b["key"], "count": b["count"]} for b in count_breakdown(by_type, CONSULTATION_TYPES, total)
        ],
        "urgency_breakdown": [
            {"urgency": b["key"], "count": b["count"]} for b in count_breakdown(by_urgency, URGENCY_LEVELS, total)
        ],
        "consultant_workload": workload,
    }
