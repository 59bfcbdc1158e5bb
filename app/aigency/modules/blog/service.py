from __future__ import annotations

import re
from collections import Counter
from datetime import datetime
from typing import TYPE_CHECKING

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import Conflict, NotAuthorized, NotFound, ValidationFailed
from app.aigency.modules.blog.models import BlogPost
from app.aigency.rbac import ensure_permission, user_has_permission
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.models import User
    from app.aigency.modules.blog.schemas import BlogPostCreateIn, BlogPostUpdateIn


SORT_FIELDS = {
    "publishedAt": BlogPost.published_at,
    "published_at": BlogPost.published_at,
    "viewCount": BlogPost.view_count,
    "view_count": BlogPost.view_count,
    "createdAt": BlogPost.created_at,
    "created_at": BlogPost.created_at,
}


def generate_slug(title: str) -> str:
    slug = (title or "").lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def _touch_paths(*slugs: str | None) -> None:
    revalidate_path("/blog", "/admin/blog", *[f"/blog/{sl}" for sl in slugs if sl])


def _ensure_can_edit(post: BlogPost, actor: "User") -> None:
    ensure_permission(actor, "blog.manage")
    if post.author_id != actor.id and not user_has_permission(actor, "blog.manage_all"):
        raise NotAuthorized("Only the author can modify this post.")


def _ensure_unique_slug(s: "Session", slug: str, exclude_id: int | None = None) -> None:
    q = s.query(BlogPost.id).filter(BlogPost.slug == slug)
    if exclude_id is not None:
        q = q.filter(BlogPost.id != exclude_id)
    if q.first():
        raise Conflict(f"A post with slug '{slug}' already exists.")


def list_posts(
    s: "Session",
    viewer: "User | None",
    *,
    published: bool | None = None,
    author_id: int | None = None,
    tag: str | None = None,
    sort_by: str = "publishedAt",
    descending: bool = True,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[BlogPost], int]:
    """
    Readers without blog.manage only ever see published posts; asking for
    drafts explicitly is refused.
    """
    can_manage = user_has_permission(viewer, "blog.manage")
    if published is False and not can_manage:
        ensure_permission(viewer, "blog.manage")
    if not can_manage:
        published = True

    q = s.query(BlogPost)
    if published is not None:
        q = q.filter(BlogPost.published.is_(published))
    if author_id is not None:
        q = q.filter(BlogPost.author_id == author_id)
    col = SORT_FIELDS.get(sort_by, BlogPost.published_at)
    q = q.order_by(col.desc() if descending else col.asc(), BlogPost.id.desc())

    if tag:
        # tags live in a JSON column; filter in Python to stay portable across sqlite/postgres
        tagged = [p for p in q.all() if tag in (p.tags or [])]
        return tagged[offset:offset + limit], len(tagged)

    total = q.count()
    return q.offset(offset).limit(limit).all(), total


def get_post(s: "Session", post_id: int) -> BlogPost:
    post = s.get(BlogPost, post_id)
    if not post:
        raise NotFound("Post")
    return post


def get_post_by_slug(s: "Session", slug: str, viewer: "User | None", *, count_view: bool = True) -> BlogPost:
    post = s.query(BlogPost).filter(BlogPost.slug == slug).one_or_none()
    if not post:
        raise NotFound("Post")
    if not post.published and not user_has_permission(viewer, "blog.manage"):
        raise NotFound("Post")
    if count_view:
        post.view_count = (post.view_count or 0) + 1
    return post


def create_post(s: "Session", data: "BlogPostCreateIn", actor: "User") -> BlogPost:
    ensure_permission(actor, "blog.manage")
    if data.published:
        ensure_permission(actor, "blog.publish")
    slug = data.slug or generate_slug(data.title)
    if len(slug) < 3:
        raise ValidationFailed(["slug: could not derive a slug of at least 3 characters from the title"])
    _ensure_unique_slug(s, slug)

    now = datetime.utcnow()
    post = BlogPost(
        title=data.title,
        slug=slug,
        content=data.content,
        description=data.description or None,
        featured_image=data.featured_image or None,
        tags=list(data.tags),
        published=data.published,
        published_at=now if data.published else None,
        view_count=0,
        author_id=actor.id,
        created_at=now,
        updated_at=now,
    )
    s.add(post)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="blog_post.create",
        entity_type="BlogPost",
        entity_id=str(post.id),
        metadata={"slug": post.slug, "published": post.published},
    )
    _touch_paths(post.slug)
    return post


def update_post(s: "Session", post: BlogPost, data: "BlogPostUpdateIn", actor: "User") -> BlogPost:
    _ensure_can_edit(post, actor)
    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    old_slug = post.slug

    if "slug" in updates and updates["slug"] != post.slug:
        _ensure_unique_slug(s, updates["slug"], exclude_id=post.id)
    if updates.get("published") and not post.published:
        ensure_permission(actor, "blog.publish")
        if post.published_at is None:
            post.published_at = datetime.utcnow()

    changes = apply_changes(post, updates)
    if changes:
        post.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="blog_post.update",
            entity_type="BlogPost",
            entity_id=str(post.id),
            metadata={"changes": {k: v for k, v in changes.items() if k != "content"}, "content_changed": "content" in changes},
        )
    _touch_paths(old_slug, post.slug)
    return post


def toggle_publish(s: "Session", post: BlogPost, actor: "User") -> BlogPost:
    _ensure_can_edit(post, actor)
    if not post.published:
        ensure_permission(actor, "blog.publish")
        post.published = True
        if post.published_at is None:
            post.published_at = datetime.utcnow()
    else:
        post.published = False
    post.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="blog_post.publish" if post.published else "blog_post.unpublish",
        entity_type="BlogPost",
        entity_id=str(post.id),
        metadata={"slug": post.slug},
    )
    _touch_paths(post.slug)
    return post


def delete_post(s: "Session", post: BlogPost, actor: "User") -> None:
    _ensure_can_edit(post, actor)
    record_event(
        s,
        actor=actor,
        action="blog_post.delete",
        entity_type="BlogPost",
        entity_id=str(post.id),
        metadata={"slug": post.slug, "title": post.title},
    )
    _touch_paths(post.slug)
    s.delete(post)


def popular_tags(s: "Session", limit: int = 10) -> list[dict]:
    counts: Counter[str] = Counter()
    for (tags,) in s.query(BlogPost.tags).filter(BlogPost.published.is_(True)).all():
        counts.update(t for t in (tags or []) if t)
    return [{"tag": tag, "count": n} for tag, n in counts.most_common(limit)]
