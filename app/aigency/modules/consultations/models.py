from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base, User
from app.aigency.utils import iso


class Consultation(Base):
    __tablename__ = "consultations"
    __table_args__ = (
        Index("idx_consultations_user", "user_id"),
        Index("idx_consultations_consultant", "assigned_consultant_id"),
        Index("idx_consultations_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    consultation_type: Mapped[str] = mapped_column(String(32), nullable=False)  # strategy, implementation, assessment, training, other
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")  # low, medium, high, critical

    # Business context
    company_size: Mapped[str | None] = mapped_column(String(64), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(128), nullable=True)
    budget_range: Mapped[str | None] = mapped_column(String(64), nullable=True)
    timeline: Mapped[str | None] = mapped_column(String(128), nullable=True)
    current_ai_usage: Mapped[str | None] = mapped_column(Text, nullable=True)
    specific_challenges: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    assigned_consultant_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    priority_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0..10
    preferred_contact_method: Mapped[str] = mapped_column(String(16), nullable=False, default="email")  # email, phone, video, in_person
    preferred_times: Mapped[list | dict | None] = mapped_column(JSON, nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    consultation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    requester: Mapped[User | None] = relationship(foreign_keys=[user_id], lazy="selectin")
    consultant: Mapped[User | None] = relationship(foreign_keys=[assigned_consultant_id], lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "requester_name": self.requester.display_name if self.requester else None,
            "requester_email": self.requester.email if self.requester else None,
            "subject": self.subject,
            "description": self.description,
            "consultation_type": self.consultation_type,
            "urgency": self.urgency,
            "company_size": self.company_size,
            "industry": self.industry,
            "budget_range": self.budget_range,
            "timeline": self.timeline,
            "current_ai_usage": self.current_ai_usage,
            "specific_challenges": self.specific_challenges,
            "status": self.status,
            "assigned_consultant_id": self.assigned_consultant_id,
            "consultant_name": self.consultant.display_name if self.consultant else None,
            "priority_score": self.priority_score,
            "preferred_contact_method": self.preferred_contact_method,
            "preferred_times": self.preferred_times,
            "scheduled_at": iso(self.scheduled_at),
            "consultation_notes": self.consultation_notes,
            "follow_up_required": self.follow_up_required,
            "follow_up_date": iso(self.follow_up_date),
            "completed_at": iso(self.completed_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
