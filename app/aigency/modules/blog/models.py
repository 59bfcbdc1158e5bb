from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base, User
from app.aigency.utils import iso


class BlogPost(Base):
    __tablename__ = "blog_posts"
    __table_args__ = (
        Index("idx_blog_posts_published", "published", "published_at"),
        Index("idx_blog_posts_author", "author_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    featured_image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)  # first publish
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    author: Mapped[User | None] = relationship(lazy="selectin")

    def to_dict(self, *, with_content: bool = True) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "featured_image": self.featured_image,
            "tags": list(self.tags or []),
            "published": self.published,
            "published_at": iso(self.published_at),
            "view_count": self.view_count,
            "author_id": self.author_id,
            "author_name": self.author.display_name if self.author else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if with_content:
            d["content"] = self.content
        return d
