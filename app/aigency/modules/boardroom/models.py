from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.aigency.models import Base, User
from app.aigency.utils import iso


class BoardRoomPost(Base):
    __tablename__ = "board_room_posts"
    __table_args__ = (
        Index("idx_board_room_posts_feed", "is_hidden", "is_pinned", "created_at"),
        Index("idx_board_room_posts_reply_to", "reply_to_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False, default="text")  # text, announcement, question, tip

    # Threading; deleting a post removes its whole reply tree
    reply_to_id: Mapped[int | None] = mapped_column(ForeignKey("board_room_posts.id", ondelete="CASCADE"), nullable=True)
    thread_depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Moderation
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hidden_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    hidden_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    author: Mapped[User | None] = relationship(foreign_keys=[author_id], lazy="selectin")

    def to_dict(self, *, liked: bool = False) -> dict:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "author_name": self.author.display_name if self.author else None,
            "content": self.content,
            "content_type": self.content_type,
            "reply_to_id": self.reply_to_id,
            "thread_depth": self.thread_depth,
            "like_count": self.like_count,
            "reply_count": self.reply_count,
            "is_pinned": self.is_pinned,
            "is_hidden": self.is_hidden,
            "hidden_reason": self.hidden_reason,
            "user_has_liked": liked,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class BoardRoomPostLike(Base):
    __tablename__ = "board_room_post_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_board_room_post_likes_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    post_id: Mapped[int] = mapped_column(ForeignKey("board_room_posts.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
