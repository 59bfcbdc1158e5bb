from __future__ import annotations

from typing import Literal

from pydantic import Field

from app.aigency.validation import Email, Payload


class ContactIn(Payload):
    name: str = Field(min_length=1, max_length=255)
    email: Email
    phone: str | None = Field(None, max_length=64)
    company: str | None = Field(None, max_length=255)
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=10)


class ContactStatusIn(Payload):
    status: Literal["new", "read", "replied", "archived"]
    notes: str | None = None
