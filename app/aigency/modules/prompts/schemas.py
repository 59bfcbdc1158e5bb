from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field, field_validator

from app.aigency.utils import load_json_list
from app.aigency.validation import Payload

ComplexityLevel = Literal["beginner", "intermediate", "advanced"]
PromptStatus = Literal["active", "archived"]


def _clean_list(v):
    if v is None:
        return v
    return [str(t).strip() for t in load_json_list(v) if str(t).strip()]


class PromptCreateIn(Payload):
    title: str = Field(min_length=3, max_length=255)
    content: str = Field(min_length=10, validation_alias=AliasChoices("content", "prompt_text"))
    description: str | None = None
    category_id: int | None = None
    tags: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list, validation_alias=AliasChoices("industries", "industry"))
    use_case: str | None = None
    ai_model: str | None = Field(None, max_length=128)
    complexity_level: ComplexityLevel = "beginner"
    example_output: str | None = None
    is_public: bool = True
    is_featured: bool = False

    @field_validator("tags", "industries", mode="before")
    @classmethod
    def split_lists(cls, v):
        return _clean_list(v)


class PromptUpdateIn(Payload):
    title: str | None = Field(None, min_length=3, max_length=255)
    content: str | None = Field(None, min_length=10, validation_alias=AliasChoices("content", "prompt_text"))
    description: str | None = None
    category_id: int | None = None
    tags: list[str] | None = None
    industries: list[str] | None = Field(None, validation_alias=AliasChoices("industries", "industry"))
    use_case: str | None = None
    ai_model: str | None = Field(None, max_length=128)
    complexity_level: ComplexityLevel | None = None
    example_output: str | None = None
    is_public: bool | None = None
    is_featured: bool | None = None
    status: PromptStatus | None = None

    @field_validator("tags", "industries", mode="before")
    @classmethod
    def split_lists(cls, v):
        return _clean_list(v)


class PromptCategoryIn(Payload):
    name: str = Field(min_length=2, max_length=128)
    description: str | None = None
    icon: str | None = Field(None, max_length=64)
    sort_order: int = 0


class CollectionIn(Payload):
    name: str = Field(min_length=2, max_length=255)
    description: str | None = None
    is_private: bool = True


class RatingIn(Payload):
    rating: int = Field(ge=1, le=5)
