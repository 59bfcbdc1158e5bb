"""
Community board: posts, threaded replies, likes and moderation.

like_count and reply_count are denormalised onto the post and kept in step
here; nothing else writes them.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.aigency.audit import record_event
from app.aigency.errors import NotAuthorized, NotFound
from app.aigency.models import User
from app.aigency.modules.boardroom.models import BoardRoomPost, BoardRoomPostLike
from app.aigency.rbac import ensure_permission, user_has_permission
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.modules.boardroom.schemas import PostCreateIn

MODERATE = "boardroom.moderate"
MAX_FEED_PAGE = 50


def can_moderate(user: User | None) -> bool:
    return user_has_permission(user, MODERATE)


def _touch() -> None:
    revalidate_path("/board-room")


def get_post(s: "Session", post_id: int, viewer: User) -> BoardRoomPost:
    """Hidden posts only resolve for moderators."""
    post = s.get(BoardRoomPost, post_id)
    if not post or (post.is_hidden and not can_moderate(viewer)):
        raise NotFound("Post")
    return post


def create_post(s: "Session", data: "PostCreateIn", author: User) -> BoardRoomPost:
    if data.content_type == "announcement" and not can_moderate(author):
        raise NotAuthorized("Only admins can create announcements.")

    parent = get_post(s, data.reply_to_id, author) if data.reply_to_id is not None else None
    now = datetime.utcnow()
    post = BoardRoomPost(
        author_id=author.id,
        content=data.content,
        content_type=data.content_type,
        reply_to_id=parent.id if parent else None,
        thread_depth=parent.thread_depth + 1 if parent else 0,
        like_count=0,
        reply_count=0,
        is_pinned=False,
        is_hidden=False,
        created_at=now,
        updated_at=now,
    )
    post.author = author
    if parent:
        parent.reply_count = (parent.reply_count or 0) + 1
    s.add(post)
    s.flush()
    record_event(
        s,
        actor=author,
        action="board_room_post.create",
        entity_type="BoardRoomPost",
        entity_id=str(post.id),
        metadata={"content_type": post.content_type, "reply_to_id": post.reply_to_id},
    )
    _touch()
    return post


def liked_post_ids(s: "Session", user: User, post_ids: list[int]) -> set[int]:
    if not post_ids:
        return set()
    rows = (
        s.query(BoardRoomPostLike.post_id)
        .filter(BoardRoomPostLike.user_id == user.id, BoardRoomPostLike.post_id.in_(post_ids))
        .all()
    )
    return {pid for (pid,) in rows}


def list_posts(
    s: "Session", *, include_replies: bool = False, limit: int = 20, offset: int = 0
) -> tuple[list[BoardRoomPost], bool]:
    """Visible posts, pinned first then newest; top-level only unless include_replies."""
    limit = max(1, min(limit, MAX_FEED_PAGE))
    q = s.query(BoardRoomPost).filter(BoardRoomPost.is_hidden.is_(False))
    if not include_replies:
        q = q.filter(BoardRoomPost.reply_to_id.is_(None))
    rows = (
        q.order_by(BoardRoomPost.is_pinned.desc(), BoardRoomPost.created_at.desc(), BoardRoomPost.id.desc())
        .offset(offset)
        .limit(limit + 1)
        .all()
    )
    return rows[:limit], len(rows) > limit


def list_replies(s: "Session", post: BoardRoomPost) -> list[BoardRoomPost]:
    return (
        s.query(BoardRoomPost)
        .filter(BoardRoomPost.reply_to_id == post.id, BoardRoomPost.is_hidden.is_(False))
        .order_by(BoardRoomPost.created_at.asc(), BoardRoomPost.id.asc())
        .all()
    )


def pinned_posts(s: "Session") -> list[BoardRoomPost]:
    return (
        s.query(BoardRoomPost)
        .filter(BoardRoomPost.is_pinned.is_(True), BoardRoomPost.is_hidden.is_(False))
        .order_by(BoardRoomPost.created_at.desc(), BoardRoomPost.id.desc())
        .all()
    )


def toggle_like(s: "Session", post: BoardRoomPost, user: User) -> bool:
    """Like or unlike; returns whether the user now likes the post."""
    existing = (
        s.query(BoardRoomPostLike)
        .filter(BoardRoomPostLike.post_id == post.id, BoardRoomPostLike.user_id == user.id)
        .one_or_none()
    )
    if existing:
        s.delete(existing)
        post.like_count = max(0, (post.like_count or 0) - 1)
        liked = False
    else:
        s.add(BoardRoomPostLike(post_id=post.id, user_id=user.id, created_at=datetime.utcnow()))
        post.like_count = (post.like_count or 0) + 1
        liked = True
    _touch()
    return liked


def delete_post(s: "Session", post: BoardRoomPost, actor: User) -> None:
    if post.author_id != actor.id and not can_moderate(actor):
        raise NotAuthorized("Can only delete your own posts.")
    if post.reply_to_id is not None:
        parent = s.get(BoardRoomPost, post.reply_to_id)
        if parent:
            parent.reply_count = max(0, (parent.reply_count or 0) - 1)
    record_event(
        s,
        actor=actor,
        action="board_room_post.delete",
        entity_type="BoardRoomPost",
        entity_id=str(post.id),
        metadata={"author_id": post.author_id, "reply_to_id": post.reply_to_id},
    )
    _touch()
    s.delete(post)


def toggle_pin(s: "Session", post: BoardRoomPost, actor: User) -> BoardRoomPost:
    ensure_permission(actor, MODERATE)
    post.is_pinned = not post.is_pinned
    post.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="board_room_post.pin" if post.is_pinned else "board_room_post.unpin",
        entity_type="BoardRoomPost",
        entity_id=str(post.id),
    )
    _touch()
    return post


def hide_post(s: "Session", post: BoardRoomPost, reason: str, actor: User) -> BoardRoomPost:
    ensure_permission(actor, MODERATE)
    post.is_hidden = True
    post.hidden_reason = reason
    post.hidden_by_id = actor.id
    post.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="board_room_post.hide",
        entity_type="BoardRoomPost",
        entity_id=str(post.id),
        reason=reason,
    )
    _touch()
    return post
