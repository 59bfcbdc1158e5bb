from __future__ import annotations

from pydantic import Field

from app.aigency.validation import Payload


class RoleCreateIn(Payload):
    name: str = Field(min_length=3, max_length=128)
    key: str | None = Field(None, max_length=64, pattern=r"^[a-z0-9_]+$")
    description: str | None = None
    is_default: bool = False
    permission_ids: list[int] = Field(default_factory=list)


class RoleUpdateIn(Payload):
    name: str | None = Field(None, min_length=3, max_length=128)
    description: str | None = None
    is_default: bool | None = None
    permission_ids: list[int] | None = None


class AssignRolesIn(Payload):
    role_ids: list[int] = Field(default_factory=list)


class PermissionOverrideIn(Payload):
    permission_id: int
    granted: bool
