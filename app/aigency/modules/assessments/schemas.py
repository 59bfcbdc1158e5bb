from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from app.aigency.validation import Payload

QuestionType = Literal["multiple_choice", "scale", "boolean", "text"]
AssessmentStatus = Literal["in_progress", "completed", "abandoned"]


class AssessmentSubmitIn(Payload):
    title: str = Field("AI Readiness Assessment", min_length=1, max_length=255)
    # question id -> raw answer
    responses: dict[int, str | int | float | bool | None] = Field(default_factory=dict)


class AssessmentStatusIn(Payload):
    status: AssessmentStatus


class AssessmentCategoryIn(Payload):
    name: str = Field(min_length=2, max_length=128)
    description: str | None = None
    icon: str | None = Field(None, max_length=64)
    sort_order: int = 0
    is_active: bool = True


class AssessmentQuestionIn(Payload):
    category_id: int
    question_text: str = Field(min_length=5)
    question_type: QuestionType
    options: list[str] | None = None
    weight: float = Field(1.0, gt=0, le=10)
    sort_order: int = 0
    is_required: bool = True
    is_active: bool = True

    @model_validator(mode="after")
    def options_match_type(self) -> "AssessmentQuestionIn":
        if self.question_type == "multiple_choice" and not self.options:
            raise ValueError("Multiple choice questions need at least one option.")
        if self.question_type != "multiple_choice":
            self.options = None
        return self


class AssessmentQuestionUpdateIn(Payload):
    question_text: str | None = Field(None, min_length=5)
    options: list[str] | None = None
    weight: float | None = Field(None, gt=0, le=10)
    sort_order: int | None = None
    is_required: bool | None = None
    is_active: bool | None = None
