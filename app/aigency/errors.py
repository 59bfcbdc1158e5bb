"""
Action errors and the JSON error envelope.

Services raise these; the handlers registered in create_app() turn them into
`{"success": false, "error": ...}` with the matching HTTP status.
"""
from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException


class ActionError(Exception):
    status_code = 400

    def __init__(self, message: str, *, errors: list[str] | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailed(ActionError):
    status_code = 400

    def __init__(self, errors: list[str]):
        super().__init__(errors[0] if errors else "Invalid input.", errors=errors)


class NotAuthenticated(ActionError):
    status_code = 401

    def __init__(self, message: str = "Authentication required."):
        super().__init__(message)


class NotAuthorized(ActionError):
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(message)


class NotFound(ActionError):
    status_code = 404

    def __init__(self, what: str = "Resource"):
        super().__init__(f"{what} not found.")


class Conflict(ActionError):
    status_code = 409


class TooManyRequests(ActionError):
    status_code = 429


class UpstreamError(ActionError):
    status_code = 502


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ActionError)
    def _action_error(e: ActionError):  # type: ignore[no-redef]
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        if e.status_code == 403:
            app.logger.warning(
                "Forbidden: missing_permission=%s request_id=%s",
                getattr(g, "missing_permission", None),
                getattr(g, "request_id", None),
            )
        elif e.status_code >= 500:
            app.logger.error("%s (request_id=%s)", e.message, getattr(g, "request_id", None))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        return jsonify({"success": False, "error": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"success": False, "error": "Internal server error"}), 500
