from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.modules.consultations.schemas import (
    ConsultationAssignIn,
    ConsultationCompleteIn,
    ConsultationCreateIn,
    ConsultationUpdateIn,
)
from app.aigency.modules.consultations.service import (
    assign_consultant,
    available_consultants,
    complete_consultation,
    consultation_stats,
    create_consultation,
    delete_consultation,
    get_consultation,
    list_consultations,
    update_consultation,
)
from app.aigency.rbac import login_user_required, require_permission
from app.aigency.utils import ok, paging_args, parse_datetime, parse_int, request_payload, sort_args
from app.aigency.validation import validate_payload

bp = Blueprint("consultations", __name__)


def _arg(name: str) -> str | None:
    return (request.args.get(name) or "").strip() or None


@bp.get("")
def consultations_list():
    s = db_session()
    viewer = login_user_required()
    limit, offset = paging_args(default_limit=20)
    sort_by, descending = sort_args("created_at")
    rows, total = list_consultations(
        s,
        viewer,
        consultation_type=_arg("consultation_type"),
        urgency=_arg("urgency"),
        status=_arg("status"),
        assigned_consultant_id=parse_int(request.args.get("assigned_consultant_id")),
        industry=_arg("industry"),
        date_from=parse_datetime(request.args.get("date_from")),
        date_to=parse_datetime(request.args.get("date_to")),
        search=_arg("q"),
        sort_by=sort_by,
        descending=descending,
        limit=limit,
        offset=offset,
    )
    return ok(consultations=[c.to_dict() for c in rows], total=total, limit=limit, offset=offset)


@bp.post("")
def consultations_create():
    s = db_session()
    actor = login_user_required()
    data = validate_payload(ConsultationCreateIn, request_payload())
    c = create_consultation(s, data, actor)
    s.commit()
    return ok(consultation=c.to_dict()), 201


@bp.get("/consultants")
@require_permission("consultations.assign")
def consultants_available():
    users = available_consultants(db_session())
    return ok(consultants=[{"id": u.id, "name": u.display_name, "email": u.email} for u in users])


@bp.get("/stats")
@require_permission("consultations.manage")
def consultations_stats():
    return ok(stats=consultation_stats(db_session()))


@bp.get("/<int:consultation_id>")
def consultations_detail(consultation_id: int):
    viewer = login_user_required()
    return ok(consultation=get_consultation(db_session(), consultation_id, viewer).to_dict())


@bp.post("/<int:consultation_id>")
def consultations_update(consultation_id: int):
    s = db_session()
    actor = login_user_required()
    c = get_consultation(s, consultation_id, actor)
    data = validate_payload(ConsultationUpdateIn, request_payload())
    update_consultation(s, c, data, actor)
    s.commit()
    return ok(consultation=c.to_dict())


@bp.post("/<int:consultation_id>/assign")
@require_permission("consultations.assign")
def consultations_assign(consultation_id: int):
    s = db_session()
    actor = login_user_required()
    c = get_consultation(s, consultation_id, actor)
    data = validate_payload(ConsultationAssignIn, request_payload())
    assign_consultant(s, c, data.consultant_id, actor)
    s.commit()
    return ok(consultation=c.to_dict())


@bp.post("/<int:consultation_id>/complete")
def consultations_complete(consultation_id: int):
    s = db_session()
    actor = login_user_required()
    c = get_consultation(s, consultation_id, actor)
    data = validate_payload(ConsultationCompleteIn, request_payload())
    complete_consultation(s, c, actor, notes=data.notes)
    s.commit()
    return ok(consultation=c.to_dict())


@bp.post("/<int:consultation_id>/delete")
@require_permission("consultations.manage")
def consultations_delete(consultation_id: int):
    s = db_session()
    actor = login_user_required()
    delete_consultation(s, get_consultation(s, consultation_id, actor), actor)
    s.commit()
    return ok(deleted=consultation_id)
