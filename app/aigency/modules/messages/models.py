from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base, User
from app.aigency.utils import iso


class ConsultationMessage(Base):
    __tablename__ = "consultation_messages"
    __table_args__ = (
        Index("idx_consultation_messages_consultation", "consultation_id", "created_at"),
        Index("idx_consultation_messages_sender", "sender_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    consultation_id: Mapped[int] = mapped_column(ForeignKey("consultations.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(32), nullable=False, default="text")  # text, system, file_share, code_snippet, sandbox_output
    details: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    sender: Mapped[User | None] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "consultation_id": self.consultation_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender.display_name if self.sender else None,
            "sender_email": self.sender.email if self.sender else None,
            "content": self.content,
            "message_type": self.message_type,
            "metadata": self.details,
            "is_read": self.is_read,
            "read_at": iso(self.read_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
