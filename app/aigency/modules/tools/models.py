from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base
from app.aigency.utils import iso


class ToolCategory(Base):
    __tablename__ = "tool_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "sort_order": self.sort_order,
        }


class AiTool(Base):
    __tablename__ = "ai_tools"
    __table_args__ = (
        Index("idx_ai_tools_category", "category_id"),
        Index("idx_ai_tools_status", "status", "is_public"),
        Index("idx_ai_tools_type", "tool_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    detailed_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("tool_categories.id", ondelete="SET NULL"), nullable=True)

    tool_type: Mapped[str] = mapped_column(String(32), nullable=False, default="custom")  # chatbot, automation, analysis, integration, custom
    complexity_level: Mapped[str] = mapped_column(String(32), nullable=False, default="beginner")  # beginner .. expert
    pricing_model: Mapped[str] = mapped_column(String(32), nullable=False, default="free")  # free, freemium, subscription, one_time, custom
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")  # active, beta, deprecated, maintenance

    api_endpoint: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    icon_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    category: Mapped[ToolCategory | None] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "detailed_description": self.detailed_description,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "tool_type": self.tool_type,
            "complexity_level": self.complexity_level,
            "pricing_model": self.pricing_model,
            "status": self.status,
            "api_endpoint": self.api_endpoint,
            "icon_name": self.icon_name,
            "tags": list(self.tags or []),
            "is_featured": self.is_featured,
            "is_public": self.is_public,
            "is_active": self.is_active,
            "usage_count": self.usage_count,
            "rating_average": round(self.rating_average or 0.0, 2),
            "rating_count": self.rating_count,
            "created_by_user_id": self.created_by_user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class ToolUsage(Base):
    __tablename__ = "tool_usage"
    __table_args__ = (
        Index("idx_tool_usage_user", "user_id"),
        Index("idx_tool_usage_tool", "tool_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tool_id: Mapped[int] = mapped_column(ForeignKey("ai_tools.id", ondelete="CASCADE"), nullable=False)
    session_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    actions_performed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    satisfaction_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    use_case: Mapped[str | None] = mapped_column(Text, nullable=True)
    session_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    tool: Mapped[AiTool] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "tool_id": self.tool_id,
            "tool_name": self.tool.name if self.tool else None,
            "session_duration": self.session_duration,
            "actions_performed": self.actions_performed,
            "success_rate": self.success_rate,
            "satisfaction_rating": self.satisfaction_rating,
            "use_case": self.use_case,
            "session_notes": self.session_notes,
            "created_at": iso(self.created_at),
        }


class ToolRating(Base):
    __tablename__ = "tool_ratings"
    __table_args__ = (UniqueConstraint("user_id", "tool_id", name="uq_tool_ratings_user_tool"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tool_id: Mapped[int] = mapped_column(ForeignKey("ai_tools.id", ondelete="CASCADE"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
