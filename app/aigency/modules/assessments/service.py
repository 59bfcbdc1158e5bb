from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import NotFound, ValidationFailed
from app.aigency.modules.assessments.models import (
    Assessment,
    AssessmentCategory,
    AssessmentQuestion,
    AssessmentResponse,
    AssessmentResult,
)
from app.aigency.modules.assessments.scoring import (
    category_score,
    improvements_for,
    recommendations_for,
    score_answer,
    strengths_for,
)
from app.aigency.rbac import ensure_permission, user_has_permission
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.models import User
    from app.aigency.modules.assessments.schemas import (
        AssessmentCategoryIn,
        AssessmentQuestionIn,
        AssessmentQuestionUpdateIn,
        AssessmentSubmitIn,
    )

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": Assessment.created_at,
    "completed_at": Assessment.completed_at,
    "overall_score": Assessment.overall_score,
}


def list_categories(s: "Session", *, active_only: bool = True) -> list[AssessmentCategory]:
    q = s.query(AssessmentCategory)
    if active_only:
        q = q.filter(AssessmentCategory.is_active.is_(True))
    return q.order_by(AssessmentCategory.sort_order.asc(), AssessmentCategory.id.asc()).all()


def list_questions(s: "Session", *, category_id: int | None = None, active_only: bool = True) -> list[AssessmentQuestion]:
    q = s.query(AssessmentQuestion)
    if active_only:
        q = q.filter(AssessmentQuestion.is_active.is_(True))
    if category_id is not None:
        q = q.filter(AssessmentQuestion.category_id == category_id)
    return q.order_by(AssessmentQuestion.sort_order.asc(), AssessmentQuestion.id.asc()).all()


def _is_answered(value) -> bool:
    return value is not None and str(value).strip() != ""


def submit_assessment(s: "Session", data: "AssessmentSubmitIn", user: "User | None") -> tuple[Assessment, list[int]]:
    """
    Score every answered active question, persist the responses and, once all
    active questions are answered, the per-category results.

    Returns the assessment and the ids of required questions left unanswered.
    """
    questions = list_questions(s)
    if not questions:
        raise ValidationFailed(["No assessment questions are configured."])
    known = {q.id for q in questions}
    unknown = sorted(set(data.responses) - known)
    if unknown:
        logger.warning("submit_assessment ignoring unknown question ids: %s", unknown)

    now = datetime.utcnow()
    assessment = Assessment(
        user_id=user.id if user else None,
        title=data.title,
        status="in_progress",
        started_at=now,
        created_at=now,
        updated_at=now,
    )
    s.add(assessment)

    total = 0.0
    answered = 0
    missing_required: list[int] = []
    for q in questions:
        value = data.responses.get(q.id)
        if not _is_answered(value):
            if q.is_required:
                missing_required.append(q.id)
            continue
        score = score_answer(q.question_type, value, weight=q.weight, options=q.options)
        assessment.responses.append(
            AssessmentResponse(question_id=q.id, response_value=str(value).strip(), response_score=score)
        )
        total += score
        answered += 1

    assessment.completion_percentage = answered / len(questions) * 100
    assessment.overall_score = total / answered if answered else 0.0
    if answered == len(questions):
        assessment.status = "completed"
        assessment.completed_at = now
    s.flush()

    if assessment.status == "completed":
        generate_results(s, assessment)

    record_event(
        s,
        actor=user,
        action="assessment.submit",
        entity_type="Assessment",
        entity_id=str(assessment.id),
        metadata={
            "status": assessment.status,
            "overall_score": round(assessment.overall_score, 2),
            "completion_percentage": round(assessment.completion_percentage, 2),
        },
    )
    revalidate_path("/assessments", "/admin/assessments")
    return assessment, missing_required


def generate_results(s: "Session", assessment: Assessment) -> list[AssessmentResult]:
    by_category: dict[int, list[tuple[float, float]]] = {}
    for resp in assessment.responses:
        q = resp.question or s.get(AssessmentQuestion, resp.question_id)
        by_category.setdefault(q.category_id, []).append((resp.response_score, q.weight))

    assessment.results.clear()
    s.flush()
    for cat_id, scored in by_category.items():
        cat = s.get(AssessmentCategory, cat_id)
        score = category_score(scored)
        assessment.results.append(
            AssessmentResult(
                category_id=cat_id,
                category_score=score,
                recommendations=recommendations_for(cat.name, score),
                strengths=strengths_for(cat.name, score),
                improvement_areas=improvements_for(cat.name, score),
            )
        )
    s.flush()
    return list(assessment.results)


def _ensure_access(assessment: Assessment, viewer: "User | None") -> None:
    if viewer and assessment.user_id == viewer.id:
        return
    if user_has_permission(viewer, "assessments.manage"):
        return
    raise NotFound("Assessment")


def get_assessment(s: "Session", assessment_id: int, viewer: "User | None") -> Assessment:
    a = s.get(Assessment, assessment_id)
    if not a:
        raise NotFound("Assessment")
    _ensure_access(a, viewer)
    return a


def my_assessments(s: "Session", user: "User") -> list[Assessment]:
    return (
        s.query(Assessment)
        .filter(Assessment.user_id == user.id)
        .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .all()
    )


def list_assessments(
    s: "Session",
    *,
    status: str | None = None,
    user_id: int | None = None,
    sort_by: str = "created_at",
    descending: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Assessment], int]:
    q = s.query(Assessment)
    if status:
        q = q.filter(Assessment.status == status)
    if user_id is not None:
        q = q.filter(Assessment.user_id == user_id)
    total = q.count()
    col = SORT_FIELDS.get(sort_by, Assessment.created_at)
    q = q.order_by(col.desc() if descending else col.asc(), Assessment.id.desc())
    return q.offset(offset).limit(limit).all(), total


def update_status(s: "Session", assessment: Assessment, status: str, actor: "User") -> Assessment:
    _ensure_access(assessment, actor)
    old = assessment.status
    if old == status:
        return assessment
    assessment.status = status
    assessment.updated_at = datetime.utcnow()
    if status == "completed" and assessment.completed_at is None:
        assessment.completed_at = assessment.updated_at
        if not assessment.results:
            generate_results(s, assessment)
    record_event(
        s,
        actor=actor,
        action="assessment.status",
        entity_type="Assessment",
        entity_id=str(assessment.id),
        metadata={"old": old, "new": status},
    )
    revalidate_path("/assessments", "/admin/assessments")
    return assessment


def delete_assessment(s: "Session", assessment: Assessment, actor: "User") -> None:
    _ensure_access(assessment, actor)
    record_event(
        s,
        actor=actor,
        action="assessment.delete",
        entity_type="Assessment",
        entity_id=str(assessment.id),
        metadata={"user_id": assessment.user_id, "status": assessment.status},
    )
    revalidate_path("/assessments", "/admin/assessments")
    s.delete(assessment)


def assessment_stats(s: "Session") -> dict:
    total = s.query(func.count(Assessment.id)).scalar() or 0
    completed = s.query(func.count(Assessment.id)).filter(Assessment.status == "completed").scalar() or 0
    in_progress = s.query(func.count(Assessment.id)).filter(Assessment.status == "in_progress").scalar() or 0
    abandoned = s.query(func.count(Assessment.id)).filter(Assessment.status == "abandoned").scalar() or 0
    avg_score = (
        s.query(func.avg(Assessment.overall_score)).filter(Assessment.status == "completed").scalar()
    )
    per_category = (
        s.query(AssessmentCategory.name, func.avg(AssessmentResult.category_score), func.count(AssessmentResult.id))
        .join(AssessmentResult, AssessmentResult.category_id == AssessmentCategory.id)
        .group_by(AssessmentCategory.name)
        .order_by(AssessmentCategory.name.asc())
        .all()
    )
    return {
        "total": int(total),
        "completed": int(completed),
        "in_progress": int(in_progress),
        "abandoned": int(abandoned),
        "completion_rate": round(completed / total * 100, 1) if total else 0.0,
        "average_score": round(float(avg_score), 2) if avg_score is not None else 0.0,
        "categories": [
            {"name": name, "average_score": round(float(avg or 0.0), 2), "count": int(n)}
            for name, avg, n in per_category
        ],
    }


def assessment_report(assessment: Assessment) -> dict:
    return {
        **assessment.to_dict(),
        "responses": [r.to_dict() for r in sorted(assessment.responses, key=lambda r: r.question_id)],
        "results": [r.to_dict() for r in sorted(assessment.results, key=lambda r: r.category_id)],
    }


# ---------- Questionnaire admin ----------
def create_category(s: "Session", data: "AssessmentCategoryIn", actor: "User") -> AssessmentCategory:
    ensure_permission(actor, "assessments.manage")
    if s.query(AssessmentCategory.id).filter(AssessmentCategory.name == data.name).first():
        raise ValidationFailed([f"name: category '{data.name}' already exists"])
    cat = AssessmentCategory(**data.model_dump())
    s.add(cat)
    s.flush()
    record_event(s, actor=actor, action="assessment_category.create", entity_type="AssessmentCategory", entity_id=str(cat.id), metadata={"name": cat.name})
    return cat


def create_question(s: "Session", data: "AssessmentQuestionIn", actor: "User") -> AssessmentQuestion:
    ensure_permission(actor, "assessments.manage")
    if not s.get(AssessmentCategory, data.category_id):
        raise ValidationFailed([f"category_id: unknown category {data.category_id}"])
    q = AssessmentQuestion(**data.model_dump())
    s.add(q)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="assessment_question.create",
        entity_type="AssessmentQuestion",
        entity_id=str(q.id),
        metadata={"category_id": q.category_id, "question_type": q.question_type},
    )
    return q


def update_question(s: "Session", question: AssessmentQuestion, data: "AssessmentQuestionUpdateIn", actor: "User") -> AssessmentQuestion:
    ensure_permission(actor, "assessments.manage")
    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k == "options"}
    if "options" in updates and question.question_type == "multiple_choice" and not updates["options"]:
        raise ValidationFailed(["options: multiple choice questions need at least one option"])
    if question.question_type != "multiple_choice":
        updates.pop("options", None)
    changes = apply_changes(question, updates)
    if changes:
        record_event(
            s,
            actor=actor,
            action="assessment_question.update",
            entity_type="AssessmentQuestion",
            entity_id=str(question.id),
            metadata={"changes": changes},
        )
    return question
