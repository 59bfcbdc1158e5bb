from __future__ import annotations

from flask import Blueprint, request

from app.aigency.db import db_session
from app.aigency.modules.prompts.schemas import CollectionIn, PromptCategoryIn, PromptCreateIn, PromptUpdateIn, RatingIn
from app.aigency.modules.prompts.service import (
    add_to_collection,
    create_category,
    create_collection,
    create_prompt,
    delete_prompt,
    get_prompt,
    list_categories,
    list_collections,
    list_prompts,
    rate_prompt,
    record_use,
    remove_from_collection,
    save_prompt,
    saved_prompts,
    unsave_prompt,
    update_prompt,
)
from app.aigency.rbac import current_user, login_user_required
from app.aigency.security import csrf_exempt
from app.aigency.utils import ok, paging_args, parse_bool, parse_int, request_payload, sort_args
from app.aigency.validation import validate_payload

bp = Blueprint("prompts", __name__)


@bp.get("")
def prompts_list():
    s = db_session()
    limit, offset = paging_args()
    sort_by, descending = sort_args("created_at")
    status = (request.args.get("status") or "active").strip()
    prompts, total = list_prompts(
        s,
        current_user(),
        is_public=parse_bool(request.args.get("is_public")),
        is_featured=parse_bool(request.args.get("is_featured")),
        status=None if status == "all" else status,
        category_id=parse_int(request.args.get("category_id")),
        complexity_level=(request.args.get("complexity_level") or "").strip() or None,
        ai_model=(request.args.get("ai_model") or "").strip() or None,
        author_id=parse_int(request.args.get("author_id")),
        tag=(request.args.get("tag") or "").strip() or None,
        industry=(request.args.get("industry") or "").strip() or None,
        search=(request.args.get("q") or "").strip() or None,
        sort_by=sort_by,
        descending=descending,
        limit=limit,
        offset=offset,
    )
    return ok(prompts=[p.to_dict() for p in prompts], total=total, limit=limit, offset=offset)


@bp.get("/<int:prompt_id>")
def prompts_detail(prompt_id: int):
    return ok(prompt=get_prompt(db_session(), prompt_id, current_user()).to_dict())


@bp.post("/<int:prompt_id>/use")
@csrf_exempt
def prompts_use(prompt_id: int):
    s = db_session()
    prompt = record_use(s, get_prompt(s, prompt_id, current_user()))
    s.commit()
    return ok(usage_count=prompt.usage_count)


@bp.post("")
def prompts_create():
    s = db_session()
    actor = login_user_required()
    data = validate_payload(PromptCreateIn, request_payload())
    prompt = create_prompt(s, data, actor)
    s.commit()
    return ok(prompt=prompt.to_dict()), 201


@bp.post("/<int:prompt_id>")
def prompts_update(prompt_id: int):
    s = db_session()
    actor = login_user_required()
    prompt = get_prompt(s, prompt_id, actor)
    data = validate_payload(PromptUpdateIn, request_payload())
    update_prompt(s, prompt, data, actor)
    s.commit()
    return ok(prompt=prompt.to_dict())


@bp.post("/<int:prompt_id>/delete")
def prompts_delete(prompt_id: int):
    s = db_session()
    actor = login_user_required()
    delete_prompt(s, get_prompt(s, prompt_id, actor), actor)
    s.commit()
    return ok(deleted=prompt_id)


@bp.post("/<int:prompt_id>/rate")
def prompts_rate(prompt_id: int):
    s = db_session()
    actor = login_user_required()
    data = validate_payload(RatingIn, request_payload())
    prompt = rate_prompt(s, get_prompt(s, prompt_id, actor), data.rating, actor)
    s.commit()
    return ok(rating_average=round(prompt.rating_average, 2), rating_count=prompt.rating_count)


# ---------- Categories ----------
@bp.get("/categories")
def categories_list():
    return ok(categories=list_categories(db_session()))


@bp.post("/categories")
def categories_create():
    s = db_session()
    actor = login_user_required()
    data = validate_payload(PromptCategoryIn, request_payload())
    cat = create_category(s, data, actor)
    s.commit()
    return ok(category=cat.to_dict()), 201


# ---------- Saved ----------
@bp.get("/saved")
def saved_list():
    user = login_user_required()
    return ok(prompts=[p.to_dict() for p in saved_prompts(db_session(), user)])


@bp.post("/<int:prompt_id>/save")
def saved_add(prompt_id: int):
    s = db_session()
    user = login_user_required()
    save_prompt(s, get_prompt(s, prompt_id, user), user)
    s.commit()
    return ok(saved=True)


@bp.post("/<int:prompt_id>/unsave")
def saved_remove(prompt_id: int):
    s = db_session()
    user = login_user_required()
    removed = unsave_prompt(s, prompt_id, user)
    s.commit()
    return ok(saved=False, removed=removed)


# ---------- Collections ----------
@bp.get("/collections")
def collections_list():
    user = login_user_required()
    return ok(collections=[c.to_dict() for c in list_collections(db_session(), user)])


@bp.post("/collections")
def collections_create():
    s = db_session()
    user = login_user_required()
    data = validate_payload(CollectionIn, request_payload())
    col = create_collection(s, data, user)
    s.commit()
    return ok(collection=col.to_dict()), 201


@bp.post("/collections/<int:collection_id>/prompts/<int:prompt_id>")
def collections_add(collection_id: int, prompt_id: int):
    s = db_session()
    user = login_user_required()
    col = add_to_collection(s, collection_id, get_prompt(s, prompt_id, user), user)
    s.commit()
    return ok(collection=col.to_dict())


@bp.post("/collections/<int:collection_id>/prompts/<int:prompt_id>/delete")
def collections_remove(collection_id: int, prompt_id: int):
    s = db_session()
    user = login_user_required()
    col = remove_from_collection(s, collection_id, prompt_id, user)
    s.commit()
    return ok(collection=col.to_dict())
