from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from app.aigency.utils import load_json_list
from app.aigency.validation import OptionalUrl, Payload

ToolType = Literal["chatbot", "automation", "analysis", "integration", "custom"]
ToolComplexity = Literal["beginner", "intermediate", "advanced", "expert"]
PricingModel = Literal["free", "freemium", "subscription", "one_time", "custom"]
ToolStatus = Literal["active", "beta", "deprecated", "maintenance"]


def _clean_tags(v):
    if v is None:
        return v
    return [str(t).strip() for t in load_json_list(v) if str(t).strip()]


class ToolCreateIn(Payload):
    name: str = Field(min_length=2, max_length=255)
    description: str | None = None
    detailed_description: str | None = None
    category_id: int | None = None
    tool_type: ToolType = "custom"
    complexity_level: ToolComplexity = "beginner"
    pricing_model: PricingModel = "free"
    status: ToolStatus = "active"
    api_endpoint: OptionalUrl = None
    icon_name: str | None = Field(None, max_length=64)
    tags: list[str] = Field(default_factory=list)
    is_featured: bool = False
    is_public: bool = True
    is_active: bool = True

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return _clean_tags(v)


class ToolUpdateIn(Payload):
    name: str | None = Field(None, min_length=2, max_length=255)
    description: str | None = None
    detailed_description: str | None = None
    category_id: int | None = None
    tool_type: ToolType | None = None
    complexity_level: ToolComplexity | None = None
    pricing_model: PricingModel | None = None
    status: ToolStatus | None = None
    api_endpoint: OptionalUrl = None
    icon_name: str | None = Field(None, max_length=64)
    tags: list[str] | None = None
    is_featured: bool | None = None
    is_public: bool | None = None
    is_active: bool | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return _clean_tags(v)


class ToolCategoryIn(Payload):
    name: str = Field(min_length=2, max_length=128)
    description: str | None = None
    icon: str | None = Field(None, max_length=64)
    color: str | None = Field(None, max_length=32)
    sort_order: int = 0


class ToolUsageIn(Payload):
    session_duration: int | None = Field(None, ge=0)
    actions_performed: int | None = Field(None, ge=0)
    success_rate: float | None = Field(None, ge=0, le=100)
    satisfaction_rating: int | None = Field(None, ge=1, le=5)
    use_case: str | None = None
    session_notes: str | None = None


class ToolRatingIn(Payload):
    rating: int = Field(ge=1, le=5)
    review: str | None = None
