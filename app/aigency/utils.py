from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from flask import request

from app.aigency.errors import ValidationFailed

MAX_PAGE_SIZE = 200


def ok(**data: Any) -> dict[str, Any]:
    return {"success": True, **data}


def request_payload() -> dict[str, Any]:
    """JSON body if present, otherwise the submitted form."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationFailed(["Request body must be a JSON object."])
        return data
    return {k: v for k, v in request.form.items()}


def iso(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def parse_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    v = str(value).strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return None


def parse_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO date or datetime (YYYY-MM-DD[THH:MM[:SS]])."""
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationFailed([f"Invalid date: {value}"])


def paging_args(default_limit: int = 50) -> tuple[int, int]:
    limit = parse_int(request.args.get("limit"), default_limit) or default_limit
    offset = parse_int(request.args.get("offset"), 0) or 0
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


def sort_args(default_field: str, default_order: str = "desc") -> tuple[str, bool]:
    field = (request.args.get("sort_by") or default_field).strip()
    order = (request.args.get("sort_order") or default_order).strip().lower()
    return field, order != "asc"


def load_json_list(raw: Any) -> list:
    """
    Accept a JSON list, a JSON string of a list, or a comma separated string.
    Raises ValueError for anything else so schema validators report a 400.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, str):
        raise ValueError("must be a list or a comma separated string")
    raw = raw.strip()
    if raw.startswith("["):
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return value if isinstance(value, list) else []
    return [p.strip() for p in raw.split(",") if p.strip()]
