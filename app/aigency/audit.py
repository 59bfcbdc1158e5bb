import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.aigency.models import AuditEvent, User


def _request_origin() -> tuple[str | None, str | None]:
    if not has_request_context():
        return None, None
    return getattr(g, "request_id", None), request.remote_addr


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Add an audit row to the session; the caller's commit persists it together
    with the change it describes. Works outside a request (seed scripts, CLI).
    """
    rid, ip = _request_origin()
    ev = AuditEvent(
        request_id=rid,
        client_ip=ip,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev


def apply_changes(obj: Any, updates: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """
    Set each attribute that actually differs and return {"field": {"old", "new"}}
    for the audit metadata.
    """
    changes: dict[str, dict[str, Any]] = {}
    for field, new in updates.items():
        old = getattr(obj, field)
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(obj, field, new)
    return changes
