from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base, User
from app.aigency.utils import iso


class PromptCategory(Base):
    __tablename__ = "prompt_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "sort_order": self.sort_order,
        }


class Prompt(Base):
    __tablename__ = "prompts"
    __table_args__ = (
        Index("idx_prompts_category", "category_id"),
        Index("idx_prompts_author", "author_id"),
        Index("idx_prompts_public_status", "is_public", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)  # the prompt text itself
    category_id: Mapped[int | None] = mapped_column(ForeignKey("prompt_categories.id", ondelete="SET NULL"), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    industries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    use_case: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    complexity_level: Mapped[str] = mapped_column(String(32), nullable=False, default="beginner")  # beginner, intermediate, advanced
    example_output: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")  # active, archived

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    category: Mapped[PromptCategory | None] = relationship(lazy="selectin")
    author: Mapped[User | None] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "tags": list(self.tags or []),
            "industries": list(self.industries or []),
            "use_case": self.use_case,
            "ai_model": self.ai_model,
            "complexity_level": self.complexity_level,
            "example_output": self.example_output,
            "is_public": self.is_public,
            "is_featured": self.is_featured,
            "status": self.status,
            "version": self.version,
            "usage_count": self.usage_count,
            "rating_average": round(self.rating_average or 0.0, 2),
            "rating_count": self.rating_count,
            "author_id": self.author_id,
            "author_name": self.author.display_name if self.author else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class SavedPrompt(Base):
    __tablename__ = "saved_prompts"
    __table_args__ = (UniqueConstraint("user_id", "prompt_id", name="uq_saved_prompts_user_prompt"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    prompt_id: Mapped[int] = mapped_column(ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    prompt: Mapped[Prompt] = relationship(lazy="selectin")


class PromptCollection(Base):
    __tablename__ = "prompt_collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    items: Mapped[list["PromptCollectionItem"]] = relationship(
        back_populates="collection",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_private": self.is_private,
            "prompt_ids": [i.prompt_id for i in self.items],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class PromptCollectionItem(Base):
    __tablename__ = "prompt_collection_items"
    __table_args__ = (UniqueConstraint("collection_id", "prompt_id", name="uq_collection_items_collection_prompt"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    collection_id: Mapped[int] = mapped_column(ForeignKey("prompt_collections.id", ondelete="CASCADE"), nullable=False)
    prompt_id: Mapped[int] = mapped_column(ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    collection: Mapped[PromptCollection] = relationship(back_populates="items")


class PromptRating(Base):
    __tablename__ = "prompt_ratings"
    __table_args__ = (UniqueConstraint("user_id", "prompt_id", name="uq_prompt_ratings_user_prompt"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    prompt_id: Mapped[int] = mapped_column(ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
