from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.modules.blog.schemas import BlogPostCreateIn, BlogPostUpdateIn
from app.aigency.modules.blog.service import (
    create_post,
    delete_post,
    generate_slug,
    get_post,
    get_post_by_slug,
    list_posts,
    popular_tags,
    toggle_publish,
    update_post,
)
from app.aigency.rbac import current_user, login_user_required, require_permission
from app.aigency.utils import ok, paging_args, parse_bool, parse_int, request_payload, sort_args
from app.aigency.validation import validate_payload

bp = Blueprint("blog", __name__)


@bp.get("/posts")
def posts_list():
    s = db_session()
    limit, offset = paging_args(default_limit=20)
    sort_by, descending = sort_args("publishedAt")
    posts, total = list_posts(
        s,
        current_user(),
        published=parse_bool(request.args.get("published")),
        author_id=parse_int(request.args.get("author_id")),
        tag=(request.args.get("tag") or "").strip() or None,
        sort_by=sort_by,
        descending=descending,
        limit=limit,
        offset=offset,
    )
    return ok(posts=[p.to_dict(with_content=False) for p in posts], total=total, limit=limit, offset=offset)


@bp.get("/posts/slug/<slug>")
def posts_by_slug(slug: str):
    s = db_session()
    post = get_post_by_slug(s, slug, current_user())
    s.commit()
    return ok(post=post.to_dict())


@bp.get("/posts/<int:post_id>")
@require_permission("blog.manage")
def posts_detail(post_id: int):
    return ok(post=get_post(db_session(), post_id).to_dict())


@bp.get("/tags")
def tags_popular():
    limit = parse_int(request.args.get("limit"), 10) or 10
    return ok(tags=popular_tags(db_session(), limit=max(1, min(limit, 100))))


@bp.get("/slug")
def slug_preview():
    return ok(slug=generate_slug(request.args.get("title") or ""))


@bp.post("/posts")
@require_permission("blog.manage")
def posts_create():
    s = db_session()
    data = validate_payload(BlogPostCreateIn, request_payload())
    post = create_post(s, data, current_user())
    s.commit()
    return ok(post=post.to_dict()), 201


@bp.post("/posts/<int:post_id>")
def posts_update(post_id: int):
    s = db_session()
    actor = login_user_required()
    post = get_post(s, post_id)
    data = validate_payload(BlogPostUpdateIn, request_payload())
    update_post(s, post, data, actor)
    s.commit()
    return ok(post=post.to_dict())


@bp.post("/posts/<int:post_id>/publish")
def posts_toggle_publish(post_id: int):
    s = db_session()
    actor = login_user_required()
    post = toggle_publish(s, get_post(s, post_id), actor)
    s.commit()
    return ok(post=post.to_dict(with_content=False))


@bp.post("/posts/<int:post_id>/delete")
def posts_delete(post_id: int):
    s = db_session()
    actor = login_user_required()
    delete_post(s, get_post(s, post_id), actor)
    s.commit()
    return ok(deleted=post_id)
