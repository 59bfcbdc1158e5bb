from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from app.aigency.validation import Payload

MessageType = Literal["text", "system", "file_share", "code_snippet", "sandbox_output"]


class MessageSendIn(Payload):
    content: str = Field(min_length=1, max_length=10000)
    message_type: MessageType = "text"
    metadata: dict[str, Any] | None = None


class MarkReadIn(Payload):
    message_ids: list[int] | None = None
