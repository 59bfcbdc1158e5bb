"""
Cache invalidation for the public pages.

Mutations call revalidate_path() with the public URLs they affect. After a
successful response the collected paths are logged and sent back in a header
so the rendering layer / CDN in front of this API can purge them.
"""
from __future__ import annotations

import logging

from flask import Response, current_app, g

logger = logging.getLogger(__name__)


def revalidate_path(*paths: str) -> None:
    pending: list[str] = getattr(g, "revalidate_paths", None) or []
    for p in paths:
        if p and p not in pending:
            pending.append(p)
    g.revalidate_paths = pending


def pending_paths() -> list[str]:
    return list(getattr(g, "revalidate_paths", None) or [])


def emit_revalidation(response: Response) -> Response:
    paths = pending_paths()
    if not paths or response.status_code >= 400:
        return response
    header = current_app.config.get("REVALIDATE_HEADER") or "X-Revalidate-Paths"
    response.headers[header] = ", ".join(paths)
    logger.info("revalidate paths=%s request_id=%s", paths, getattr(g, "request_id", None))
    return response
