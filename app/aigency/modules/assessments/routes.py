from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.errors import NotFound
from app.aigency.modules.assessments.models import AssessmentQuestion
from app.aigency.modules.assessments.schemas import (
    AssessmentCategoryIn,
    AssessmentQuestionIn,
    AssessmentQuestionUpdateIn,
    AssessmentStatusIn,
    AssessmentSubmitIn,
)
from app.aigency.modules.assessments.service import (
    assessment_report,
    assessment_stats,
    create_category,
    create_question,
    delete_assessment,
    get_assessment,
    list_assessments,
    list_categories,
    list_questions,
    my_assessments,
    submit_assessment,
    update_question,
    update_status,
)
from app.aigency.rbac import current_user, login_user_required, require_permission
from app.aigency.security import csrf_exempt
from app.aigency.utils import ok, paging_args, parse_int, request_payload, sort_args
from app.aigency.validation import validate_payload

bp = Blueprint("assessments", __name__)


def _submission_payload() -> dict:
    """
    Accept {"responses": {id: value}} or flat form fields named question_<id>.
    """
    payload = request_payload()
    if "responses" not in payload:
        payload = {
            "title": payload.get("title") or "AI Readiness Assessment",
            "responses": {
                k[len("question_"):]: v for k, v in payload.items() if k.startswith("question_")
            },
        }
    return payload


@bp.get("/categories")
def categories_list():
    return ok(categories=[c.to_dict() for c in list_categories(db_session())])


@bp.get("/questions")
def questions_list():
    qs = list_questions(db_session(), category_id=parse_int(request.args.get("category_id")))
    return ok(questions=[q.to_dict() for q in qs])


@bp.post("/submit")
@csrf_exempt
def assessments_submit():
    s = db_session()
    data = validate_payload(AssessmentSubmitIn, _submission_payload())
    assessment, missing = submit_assessment(s, data, current_user())
    s.commit()
    return ok(
        assessment=assessment_report(assessment),
        score=round(assessment.overall_score, 2),
        completion_percentage=round(assessment.completion_percentage, 2),
        missing_required=missing,
    ), 201


@bp.get("/mine")
def assessments_mine():
    user = login_user_required()
    return ok(assessments=[a.to_dict() for a in my_assessments(db_session(), user)])


@bp.get("/<int:assessment_id>")
def assessments_detail(assessment_id: int):
    return ok(assessment=get_assessment(db_session(), assessment_id, current_user()).to_dict())


@bp.get("/<int:assessment_id>/report")
def assessments_report(assessment_id: int):
    a = get_assessment(db_session(), assessment_id, current_user())
    return ok(report=assessment_report(a))


@bp.post("/<int:assessment_id>/status")
def assessments_status(assessment_id: int):
    s = db_session()
    actor = login_user_required()
    data = validate_payload(AssessmentStatusIn, request_payload())
    a = update_status(s, get_assessment(s, assessment_id, actor), data.status, actor)
    s.commit()
    return ok(assessment=a.to_dict())


@bp.post("/<int:assessment_id>/delete")
def assessments_delete(assessment_id: int):
    s = db_session()
    actor = login_user_required()
    delete_assessment(s, get_assessment(s, assessment_id, actor), actor)
    s.commit()
    return ok(deleted=assessment_id)


# ---------- Admin ----------
@bp.get("/admin")
@require_permission("assessments.manage")
def assessments_all():
    s = db_session()
    limit, offset = paging_args()
    sort_by, descending = sort_args("created_at")
    rows, total = list_assessments(
        s,
        status=(request.args.get("status") or "").strip() or None,
        user_id=parse_int(request.args.get("user_id")),
        sort_by=sort_by,
        descending=descending,
        limit=limit,
        offset=offset,
    )
    return ok(assessments=[a.to_dict() for a in rows], total=total, limit=limit, offset=offset)


@bp.get("/admin/stats")
@require_permission("assessments.manage")
def assessments_stats():
    return ok(stats=assessment_stats(db_session()))


@bp.post("/admin/categories")
@require_permission("assessments.manage")
def admin_categories_create():
    s = db_session()
    data = validate_payload(AssessmentCategoryIn, request_payload())
    cat = create_category(s, data, current_user())
    s.commit()
    return ok(category=cat.to_dict()), 201


@bp.post("/admin/questions")
@require_permission("assessments.manage")
def admin_questions_create():
    s = db_session()
    data = validate_payload(AssessmentQuestionIn, request_payload())
    q = create_question(s, data, current_user())
    s.commit()
    return ok(question=q.to_dict()), 201


@bp.post("/admin/questions/<int:question_id>")
@require_permission("assessments.manage")
def admin_questions_update(question_id: int):
    s = db_session()
    q = s.get(AssessmentQuestion, question_id)
    if not q:
        raise NotFound("Question")
    data = validate_payload(AssessmentQuestionUpdateIn, request_payload())
    update_question(s, q, data, current_user())
    s.commit()
    return ok(question=q.to_dict())
