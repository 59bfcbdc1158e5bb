from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from app.aigency.validation import Payload

SummaryStatus = Literal["draft", "final", "archived"]


class ActionItem(BaseModel):
    item: str = Field(min_length=1, max_length=1000)
    completed: bool = False
    due_date: date | None = None


class SummaryCreateIn(Payload):
    consultation_id: int
    summary: str | None = None
    notes: str | None = None
    action_items: list[ActionItem] = Field(default_factory=list)
    key_decisions: list[str] = Field(default_factory=list)
    follow_up_tasks: list[str] = Field(default_factory=list)
    resources_shared: list[str] = Field(default_factory=list)


class SummaryUpdateIn(Payload):
    summary: str | None = None
    notes: str | None = None
    action_items: list[ActionItem] | None = None
    key_decisions: list[str] | None = None
    follow_up_tasks: list[str] | None = None
    resources_shared: list[str] | None = None
    status: SummaryStatus | None = None
