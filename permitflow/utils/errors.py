"""Standardised API error responses.

Usage
-----
    from permitflow.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Item not found")
    return api_error(E.VALIDATION_REQUIRED, "contractor_id is required")

Service exceptions are turned into the same body shape by
``register_error_handlers``.
"""

from __future__ import annotations

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from permitflow.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    StorageError,
    TransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    BAD_REQUEST = "ERR_BAD_REQUEST"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.BAD_REQUEST: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the client.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, current status, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "message": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app):
    """Map service exceptions and HTTP errors to ``api_error`` responses."""

    @app.errorhandler(ValidationError)
    def _validation(exc):
        code = E.VALIDATION_REQUIRED if exc.details else E.VALIDATION_INVALID
        return api_error(code, str(exc), details=exc.details)

    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @app.errorhandler(PermissionDenied)
    def _forbidden(exc):
        return api_error(E.FORBIDDEN, str(exc))

    @app.errorhandler(AuthenticationError)
    def _unauthenticated(exc):
        return api_error(E.UNAUTHENTICATED, str(exc), status=exc.status_code)

    @app.errorhandler(TransitionError)
    def _transition(exc):
        return api_error(
            E.CONFLICT_STATE,
            str(exc),
            details={"action": exc.action, "current_status": exc.current_status},
        )

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        return api_error(E.CONFLICT_DUPLICATE, str(exc))

    @app.errorhandler(StorageError)
    def _storage(exc):
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(HTTPException)
    def _http(exc):
        if exc.code == 404:
            return api_error(E.NOT_FOUND, "Route not found")
        code = E.BAD_REQUEST if exc.code and exc.code < 500 else E.INTERNAL
        return api_error(code, exc.description or exc.name, status=exc.code)

    @app.errorhandler(Exception)
    def _unhandled(exc):
        logger.exception("Unhandled error: %s", exc)
        return api_error(E.INTERNAL, "Server error")
