from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.modules.boardroom.schemas import PostCreateIn, PostHideIn
from app.aigency.modules.boardroom.service import (
    MODERATE,
    create_post,
    delete_post,
    get_post,
    hide_post,
    liked_post_ids,
    list_posts,
    list_replies,
    pinned_posts,
    toggle_like,
    toggle_pin,
)
from app.aigency.rbac import login_user_required, require_permission
from app.aigency.utils import ok, parse_bool, parse_int, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("boardroom", __name__)


def _serialize(s, posts, viewer) -> list[dict]:
    liked = liked_post_ids(s, viewer, [p.id for p in posts])
    return [p.to_dict(liked=p.id in liked) for p in posts]


@bp.get("/posts")
def posts_list():
    s = db_session()
    viewer = login_user_required()
    limit = parse_int(request.args.get("limit"), 20) or 20
    offset = max(0, parse_int(request.args.get("offset"), 0) or 0)
    rows, has_more = list_posts(
        s,
        include_replies=bool(parse_bool(request.args.get("include_replies"))),
        limit=limit,
        offset=offset,
    )
    return ok(posts=_serialize(s, rows, viewer), has_more=has_more, offset=offset)


@bp.post("/posts")
def posts_create():
    s = db_session()
    actor = login_user_required()
    data = validate_payload(PostCreateIn, request_payload())
    post = create_post(s, data, actor)
    s.commit()
    return ok(post=post.to_dict()), 201


@bp.get("/posts/pinned")
def posts_pinned():
    s = db_session()
    viewer = login_user_required()
    return ok(posts=_serialize(s, pinned_posts(s), viewer))


@bp.get("/posts/<int:post_id>/replies")
def posts_replies(post_id: int):
    s = db_session()
    viewer = login_user_required()
    post = get_post(s, post_id, viewer)
    return ok(replies=_serialize(s, list_replies(s, post), viewer))


@bp.post("/posts/<int:post_id>/like")
def posts_like(post_id: int):
    s = db_session()
    actor = login_user_required()
    post = get_post(s, post_id, actor)
    liked = toggle_like(s, post, actor)
    s.commit()
    return ok(liked=liked, like_count=post.like_count)


@bp.post("/posts/<int:post_id>/delete")
def posts_delete(post_id: int):
    s = db_session()
    actor = login_user_required()
    delete_post(s, get_post(s, post_id, actor), actor)
    s.commit()
    return ok(deleted=post_id)


@bp.post("/posts/<int:post_id>/pin")
@require_permission(MODERATE)
def posts_pin(post_id: int):
    s = db_session()
    actor = login_user_required()
    post = toggle_pin(s, get_post(s, post_id, actor), actor)
    s.commit()
    return ok(post=post.to_dict())


@bp.post("/posts/<int:post_id>/hide")
@require_permission(MODERATE)
def posts_hide(post_id: int):
    s = db_session()
    actor = login_user_required()
    post = get_post(s, post_id, actor)
    data = validate_payload(PostHideIn, request_payload())
    hide_post(s, post, data.reason, actor)
    s.commit()
    return ok(post=post.to_dict())
