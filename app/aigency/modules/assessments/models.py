from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base
from app.aigency.utils import iso


class AssessmentCategory(Base):
    __tablename__ = "assessment_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class AssessmentQuestion(Base):
    __tablename__ = "assessment_questions"
    __table_args__ = (Index("idx_assessment_questions_category", "category_id", "sort_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("assessment_categories.id", ondelete="CASCADE"), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(32), nullable=False)  # multiple_choice, scale, boolean, text
    options: Mapped[list | None] = mapped_column(JSON, nullable=True)  # multiple_choice only
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    category: Mapped[AssessmentCategory] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "options": list(self.options) if self.options else None,
            "weight": self.weight,
            "sort_order": self.sort_order,
            "is_required": self.is_required,
            "is_active": self.is_active,
        }


class Assessment(Base):
    __tablename__ = "assessments"
    __table_args__ = (
        Index("idx_assessments_user", "user_id"),
        Index("idx_assessments_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # None = anonymous
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="AI Readiness Assessment")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="in_progress")  # in_progress, completed, abandoned
    overall_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    completion_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    responses: Mapped[list["AssessmentResponse"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    results: Mapped[list["AssessmentResult"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "status": self.status,
            "overall_score": round(self.overall_score or 0.0, 2),
            "completion_percentage": round(self.completion_percentage or 0.0, 2),
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
            "created_at": iso(self.created_at),
        }


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"
    __table_args__ = (UniqueConstraint("assessment_id", "question_id", name="uq_assessment_responses_question"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assessment_id: Mapped[int] = mapped_column(ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[int] = mapped_column(ForeignKey("assessment_questions.id", ondelete="CASCADE"), nullable=False)
    response_value: Mapped[str] = mapped_column(Text, nullable=False)
    response_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    assessment: Mapped[Assessment] = relationship(back_populates="responses")
    question: Mapped[AssessmentQuestion] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "question_text": self.question.question_text if self.question else None,
            "question_type": self.question.question_type if self.question else None,
            "response_value": self.response_value,
            "response_score": round(self.response_score or 0.0, 2),
        }


class AssessmentResult(Base):
    __tablename__ = "assessment_results"
    __table_args__ = (UniqueConstraint("assessment_id", "category_id", name="uq_assessment_results_category"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assessment_id: Mapped[int] = mapped_column(ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("assessment_categories.id", ondelete="CASCADE"), nullable=False)
    category_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    recommendations: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)  # {priority, actions, resources}
    strengths: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    improvement_areas: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    assessment: Mapped[Assessment] = relationship(back_populates="results")
    category: Mapped[AssessmentCategory] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "category_score": round(self.category_score or 0.0, 2),
            "recommendations": dict(self.recommendations or {}),
            "strengths": list(self.strengths or []),
            "improvement_areas": list(self.improvement_areas or []),
        }
