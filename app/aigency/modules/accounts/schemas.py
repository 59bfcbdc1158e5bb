from __future__ import annotations

from pydantic import Field, model_validator

from app.aigency.validation import Email, Payload


class LoginIn(Payload):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1)


class _ProfileFields(Payload):
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    company_name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=64)
    job_title: str | None = Field(None, max_length=128)
    industry: str | None = Field(None, max_length=128)
    company_size: str | None = Field(None, max_length=64)


class RegisterIn(_ProfileFields):
    email: Email
    password: str = Field(min_length=8, max_length=256)
    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)


class UserCreateIn(_ProfileFields):
    email: Email
    password: str = Field(min_length=8, max_length=256)
    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)
    role_keys: list[str] = Field(default_factory=list)
    is_active: bool = True


class UserUpdateIn(_ProfileFields):
    email: Email | None = None
    is_active: bool | None = None


# Fields a user may change on their own account.
SELF_EDITABLE_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "company_name",
    "phone",
    "job_title",
    "industry",
    "company_size",
)


class PasswordResetIn(Payload):
    password: str = Field(min_length=8, max_length=256)
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordResetIn":
        if self.password != self.password_confirm:
            raise ValueError("Passwords do not match.")
        return self
