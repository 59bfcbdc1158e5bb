from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Literal

from pydantic import Field, field_validator

from app.aigency.validation import Payload

logger = logging.getLogger(__name__)

ConsultationType = Literal["strategy", "implementation", "assessment", "training", "other"]
Urgency = Literal["low", "medium", "high", "critical"]
ContactMethod = Literal["email", "phone", "video", "in_person"]
ConsultationStatus = Literal["pending", "in_review", "scheduled", "in_progress", "completed", "cancelled"]


class ConsultationCreateIn(Payload):
    subject: str = Field(min_length=5, max_length=255)
    description: str = Field(min_length=20)
    consultation_type: ConsultationType
    urgency: Urgency = "medium"
    company_size: str | None = Field(None, max_length=64)
    industry: str | None = Field(None, max_length=128)
    budget_range: str | None = Field(None, max_length=64)
    timeline: str | None = Field(None, max_length=128)
    current_ai_usage: str | None = None
    specific_challenges: str | None = None
    preferred_contact_method: ContactMethod = "email"
    preferred_times: Any = None

    @field_validator("preferred_times", mode="before")
    @classmethod
    def parse_preferred_times(cls, v):
        """A JSON string is decoded; anything unparseable is dropped with a warning."""
        if v is None or v == "":
            return None
        if isinstance(v, (list, dict)):
            return v
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                logger.warning("Ignoring invalid preferred_times JSON")
                return None
        return None


class ConsultationUpdateIn(Payload):
    status: ConsultationStatus | None = None
    assigned_consultant_id: int | None = None
    priority_score: int | None = Field(None, ge=0, le=10)
    scheduled_at: datetime | None = None
    consultation_notes: str | None = None
    follow_up_required: bool | None = None
    follow_up_date: datetime | None = None


class ConsultationAssignIn(Payload):
    consultant_id: int


class ConsultationCompleteIn(Payload):
    notes: str | None = None
