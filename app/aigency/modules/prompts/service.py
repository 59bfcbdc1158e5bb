from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.aigency.audit import apply_changes, record_event
from app.aigency.errors import Conflict, NotAuthorized, NotFound, ValidationFailed
from app.aigency.modules.prompts.models import (
    Prompt,
    PromptCategory,
    PromptCollection,
    PromptCollectionItem,
    PromptRating,
    SavedPrompt,
)
from app.aigency.rbac import ensure_permission, user_has_permission
from app.aigency.revalidate import revalidate_path

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.aigency.models import User
    from app.aigency.modules.prompts.schemas import CollectionIn, PromptCategoryIn, PromptCreateIn, PromptUpdateIn


SORT_FIELDS = {
    "created_at": Prompt.created_at,
    "usage_count": Prompt.usage_count,
    "title": Prompt.title,
    "rating_average": Prompt.rating_average,
}


def _touch_paths(prompt_id: int | None = None) -> None:
    revalidate_path("/prompts", "/admin/prompts")
    if prompt_id:
        revalidate_path(f"/prompts/{prompt_id}")


def _can_manage(user: "User | None", prompt: Prompt) -> bool:
    if not user:
        return False
    return prompt.author_id == user.id or user_has_permission(user, "prompts.manage")


def _check_category(s: "Session", category_id: int | None) -> None:
    if category_id is not None and not s.get(PromptCategory, category_id):
        raise ValidationFailed([f"category_id: unknown category {category_id}"])


def list_prompts(
    s: "Session",
    viewer: "User | None",
    *,
    is_public: bool | None = None,
    is_featured: bool | None = None,
    status: str | None = "active",
    category_id: int | None = None,
    complexity_level: str | None = None,
    ai_model: str | None = None,
    author_id: int | None = None,
    tag: str | None = None,
    industry: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    descending: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Prompt], int]:
    q = s.query(Prompt)
    if not user_has_permission(viewer, "prompts.manage"):
        # public library plus the viewer's own private prompts
        if viewer:
            q = q.filter(or_(Prompt.is_public.is_(True), Prompt.author_id == viewer.id))
        else:
            q = q.filter(Prompt.is_public.is_(True))
    if is_public is not None:
        q = q.filter(Prompt.is_public.is_(is_public))
    if is_featured is not None:
        q = q.filter(Prompt.is_featured.is_(is_featured))
    if status:
        q = q.filter(Prompt.status == status)
    if category_id is not None:
        q = q.filter(Prompt.category_id == category_id)
    if complexity_level:
        q = q.filter(Prompt.complexity_level == complexity_level)
    if ai_model:
        q = q.filter(Prompt.ai_model == ai_model)
    if author_id is not None:
        q = q.filter(Prompt.author_id == author_id)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(
            or_(
                func.lower(Prompt.title).like(like),
                func.lower(Prompt.description).like(like),
                func.lower(Prompt.content).like(like),
            )
        )
    col = SORT_FIELDS.get(sort_by, Prompt.created_at)
    q = q.order_by(col.desc() if descending else col.asc(), Prompt.id.desc())

    if tag or industry:
        rows = [
            p
            for p in q.all()
            if (not tag or tag in (p.tags or [])) and (not industry or industry in (p.industries or []))
        ]
        return rows[offset:offset + limit], len(rows)

    total = q.count()
    return q.offset(offset).limit(limit).all(), total


def get_prompt(s: "Session", prompt_id: int, viewer: "User | None" = None) -> Prompt:
    prompt = s.get(Prompt, prompt_id)
    if not prompt:
        raise NotFound("Prompt")
    if not prompt.is_public and not _can_manage(viewer, prompt):
        raise NotFound("Prompt")
    return prompt


def record_use(s: "Session", prompt: Prompt) -> Prompt:
    prompt.usage_count = (prompt.usage_count or 0) + 1
    return prompt


def create_prompt(s: "Session", data: "PromptCreateIn", actor: "User") -> Prompt:
    if data.is_featured:
        ensure_permission(actor, "prompts.feature")
    _check_category(s, data.category_id)
    now = datetime.utcnow()
    prompt = Prompt(
        title=data.title,
        description=data.description or None,
        content=data.content,
        category_id=data.category_id,
        tags=list(data.tags),
        industries=list(data.industries),
        use_case=data.use_case or None,
        ai_model=data.ai_model or None,
        complexity_level=data.complexity_level,
        example_output=data.example_output or None,
        is_public=data.is_public,
        is_featured=data.is_featured,
        status="active",
        version=1,
        usage_count=0,
        rating_average=0.0,
        rating_count=0,
        author_id=actor.id,
        created_at=now,
        updated_at=now,
    )
    s.add(prompt)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="prompt.create",
        entity_type="Prompt",
        entity_id=str(prompt.id),
        metadata={"title": prompt.title, "is_public": prompt.is_public, "is_featured": prompt.is_featured},
    )
    _touch_paths(prompt.id)
    return prompt


def update_prompt(s: "Session", prompt: Prompt, data: "PromptUpdateIn", actor: "User") -> Prompt:
    if not _can_manage(actor, prompt):
        raise NotAuthorized("You don't have permission to modify this prompt.")
    updates = data.model_dump(exclude_unset=True)
    if updates.get("is_featured") and not prompt.is_featured:
        ensure_permission(actor, "prompts.feature")
    if "category_id" in updates:
        _check_category(s, updates["category_id"])
    for key in ("title", "content", "complexity_level", "is_public", "is_featured", "status", "tags", "industries"):
        if key in updates and updates[key] is None:
            updates.pop(key)

    changes = apply_changes(prompt, updates)
    prompt.version = (prompt.version or 1) + 1
    prompt.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="prompt.update",
        entity_type="Prompt",
        entity_id=str(prompt.id),
        metadata={"changes": {k: v for k, v in changes.items() if k != "content"}, "version": prompt.version},
    )
    _touch_paths(prompt.id)
    return prompt


def delete_prompt(s: "Session", prompt: Prompt, actor: "User") -> None:
    if not _can_manage(actor, prompt):
        raise NotAuthorized("You don't have permission to delete this prompt.")
    record_event(
        s,
        actor=actor,
        action="prompt.delete",
        entity_type="Prompt",
        entity_id=str(prompt.id),
        metadata={"title": prompt.title},
    )
    _touch_paths(prompt.id)
    s.query(SavedPrompt).filter(SavedPrompt.prompt_id == prompt.id).delete(synchronize_session=False)
    s.query(PromptCollectionItem).filter(PromptCollectionItem.prompt_id == prompt.id).delete(synchronize_session=False)
    s.query(PromptRating).filter(PromptRating.prompt_id == prompt.id).delete(synchronize_session=False)
    s.delete(prompt)


# ---------- Categories ----------
def list_categories(s: "Session") -> list[dict]:
    counts = dict(
        s.query(Prompt.category_id, func.count(Prompt.id))
        .filter(Prompt.is_public.is_(True), Prompt.status == "active")
        .group_by(Prompt.category_id)
        .all()
    )
    cats = s.query(PromptCategory).order_by(PromptCategory.sort_order.asc(), PromptCategory.name.asc()).all()
    return [{**c.to_dict(), "prompt_count": int(counts.get(c.id, 0))} for c in cats]


def create_category(s: "Session", data: "PromptCategoryIn", actor: "User") -> PromptCategory:
    ensure_permission(actor, "prompts.manage")
    if s.query(PromptCategory.id).filter(func.lower(PromptCategory.name) == data.name.lower()).first():
        raise Conflict(f"A category named '{data.name}' already exists.")
    cat = PromptCategory(
        name=data.name,
        description=data.description or None,
        icon=data.icon or None,
        sort_order=data.sort_order,
    )
    s.add(cat)
    s.flush()
    record_event(s, actor=actor, action="prompt_category.create", entity_type="PromptCategory", entity_id=str(cat.id), metadata={"name": cat.name})
    _touch_paths()
    return cat


# ---------- Saved prompts ----------
def save_prompt(s: "Session", prompt: Prompt, user: "User") -> SavedPrompt:
    existing = (
        s.query(SavedPrompt)
        .filter(SavedPrompt.user_id == user.id, SavedPrompt.prompt_id == prompt.id)
        .one_or_none()
    )
    if existing:
        return existing
    saved = SavedPrompt(user_id=user.id, prompt_id=prompt.id)
    s.add(saved)
    s.flush()
    return saved


def unsave_prompt(s: "Session", prompt_id: int, user: "User") -> bool:
    n = (
        s.query(SavedPrompt)
        .filter(SavedPrompt.user_id == user.id, SavedPrompt.prompt_id == prompt_id)
        .delete(synchronize_session=False)
    )
    return bool(n)


def saved_prompts(s: "Session", user: "User") -> list[Prompt]:
    rows = (
        s.query(SavedPrompt)
        .filter(SavedPrompt.user_id == user.id)
        .order_by(SavedPrompt.created_at.desc(), SavedPrompt.id.desc())
        .all()
    )
    return [r.prompt for r in rows]


# ---------- Collections ----------
def list_collections(s: "Session", user: "User") -> list[PromptCollection]:
    return (
        s.query(PromptCollection)
        .filter(PromptCollection.user_id == user.id)
        .order_by(PromptCollection.created_at.desc(), PromptCollection.id.desc())
        .all()
    )


def create_collection(s: "Session", data: "CollectionIn", user: "User") -> PromptCollection:
    now = datetime.utcnow()
    col = PromptCollection(
        user_id=user.id,
        name=data.name,
        description=data.description or None,
        is_private=data.is_private,
        created_at=now,
        updated_at=now,
    )
    s.add(col)
    s.flush()
    return col


def _own_collection(s: "Session", collection_id: int, user: "User") -> PromptCollection:
    col = s.get(PromptCollection, collection_id)
    if not col or col.user_id != user.id:
        raise NotFound("Collection")
    return col


def add_to_collection(s: "Session", collection_id: int, prompt: Prompt, user: "User") -> PromptCollection:
    col = _own_collection(s, collection_id, user)
    if not any(i.prompt_id == prompt.id for i in col.items):
        col.items.append(PromptCollectionItem(prompt_id=prompt.id))
        col.updated_at = datetime.utcnow()
    s.flush()
    return col


def remove_from_collection(s: "Session", collection_id: int, prompt_id: int, user: "User") -> PromptCollection:
    col = _own_collection(s, collection_id, user)
    for item in list(col.items):
        if item.prompt_id == prompt_id:
            col.items.remove(item)
            col.updated_at = datetime.utcnow()
    s.flush()
    return col


# ---------- Ratings ----------
def rate_prompt(s: "Session", prompt: Prompt, rating: int, user: "User") -> Prompt:
    """One rating per user; re-rating replaces the previous value."""
    row = (
        s.query(PromptRating)
        .filter(PromptRating.user_id == user.id, PromptRating.prompt_id == prompt.id)
        .one_or_none()
    )
    if row:
        row.rating = rating
    else:
        s.add(PromptRating(user_id=user.id, prompt_id=prompt.id, rating=rating))
    s.flush()
    avg, count = (
        s.query(func.avg(PromptRating.rating), func.count(PromptRating.id))
        .filter(PromptRating.prompt_id == prompt.id)
        .one()
    )
    prompt.rating_average = float(avg or 0.0)
    prompt.rating_count = int(count or 0)
    return prompt
