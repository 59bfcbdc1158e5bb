from __future__ import annotations

import re
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, ValidationError

from app.aigency.errors import ValidationFailed

M = TypeVar("M", bound=BaseModel)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not is_valid_email(v):
        raise ValueError("Invalid email format.")
    return v


def _check_url(v: str | None) -> str | None:
    if v is None or v == "":
        return None
    if not URL_PATTERN.match(v):
        raise ValueError("Must be a valid http(s) URL.")
    return v


Email = Annotated[str, AfterValidator(_normalize_email)]
OptionalUrl = Annotated[str | None, AfterValidator(_check_url)]


class Payload(BaseModel):
    """Base for action inputs: strips strings, ignores unknown keys (csrf_token etc.)."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


def format_validation_errors(exc: ValidationError) -> list[str]:
    """Flatten pydantic errors into "field: message" strings."""
    out: list[str] = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        msg = str(err.get("msg") or "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append(f"{field}: {msg}" if field else msg)
    return out


def validate_payload(model: type[M], payload: dict[str, Any] | None) -> M:
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise ValidationFailed(format_validation_errors(e)) from e
