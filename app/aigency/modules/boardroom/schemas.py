from __future__ import annotations

from typing import Literal

from pydantic import Field

from app.aigency.validation import Payload

ContentType = Literal["text", "announcement", "question", "tip"]


class PostCreateIn(Payload):
    content: str = Field(min_length=1, max_length=2000)
    content_type: ContentType = "text"
    reply_to_id: int | None = None


class PostHideIn(Payload):
    reason: str = Field(min_length=1, max_length=512)
