from __future__ import annotations

from pydantic import Field, field_validator

from app.aigency.utils import load_json_list
from app.aigency.validation import Payload

SLUG_PATTERN = r"^[a-z0-9-]+$"


class _TagsMixin(Payload):
    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def split_tags(cls, v):
        if v is None:
            return v
        return [str(t).strip() for t in load_json_list(v) if str(t).strip()]


class BlogPostCreateIn(_TagsMixin):
    title: str = Field(min_length=3, max_length=255)
    slug: str | None = Field(None, min_length=3, max_length=255, pattern=SLUG_PATTERN)
    content: str = Field(min_length=10)
    description: str | None = None
    featured_image: str | None = Field(None, max_length=1024)
    published: bool = False
    tags: list[str] = Field(default_factory=list)


class BlogPostUpdateIn(_TagsMixin):
    title: str | None = Field(None, min_length=3, max_length=255)
    slug: str | None = Field(None, min_length=3, max_length=255, pattern=SLUG_PATTERN)
    content: str | None = Field(None, min_length=10)
    description: str | None = None
    featured_image: str | None = Field(None, max_length=1024)
    published: bool | None = None
    tags: list[str] | None = None
