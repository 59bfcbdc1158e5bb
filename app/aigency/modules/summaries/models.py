from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base, User
from app.aigency.modules.consultations.models import Consultation
from app.aigency.utils import iso


class ConsultationSummary(Base):
    """Session write-up for a consultation. At most one is live (not archived) at a time."""

    __tablename__ = "consultation_summaries"
    __table_args__ = (Index("idx_consultation_summaries_consultation", "consultation_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    consultation_id: Mapped[int] = mapped_column(ForeignKey("consultations.id", ondelete="CASCADE"), nullable=False)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # [{item, completed, due_date}]
    key_decisions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    follow_up_tasks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    resources_shared: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")  # draft, final, archived
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    consultation: Mapped[Consultation] = relationship(lazy="selectin")
    created_by: Mapped[User | None] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "consultation_id": self.consultation_id,
            "consultation_subject": self.consultation.subject if self.consultation else None,
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by.display_name if self.created_by else None,
            "summary": self.summary,
            "notes": self.notes,
            "action_items": [dict(i) for i in self.action_items or []],
            "key_decisions": list(self.key_decisions or []),
            "follow_up_tasks": list(self.follow_up_tasks or []),
            "resources_shared": list(self.resources_shared or []),
            "status": self.status,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
