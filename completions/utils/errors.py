"""JSON error envelope shared by every blueprint.

Views return api_error() directly; services raise the exceptions in
completions.core.exceptions and register_error_handlers() turns them into
the same envelope.

    from completions.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "System not found")
    return api_error(E.VALIDATION_REQUIRED, "project_id is required")
"""

from __future__ import annotations

import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from completions.core.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from completions.models import db


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Upstream AI provider – HTTP 502
    PROVIDER = "ERR_PROVIDER"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.PROVIDER: 502,
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
    """Build the `{"error", "code", "details?"}` envelope and its status.

    ``status`` overrides the code's default; unknown codes answer 400.
    Returns ``(response, status)`` so a view can ``return`` it directly.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def register_error_handlers(bp):
    """Attach the domain-exception → JSON handlers to a blueprint.

    Returns ``bp`` so it can wrap the Blueprint() call.
    """
    log = logging.getLogger(bp.import_name)

    @bp.errorhandler(NotFoundError)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, f"{exc.resource} not found")

    @bp.errorhandler(ValidationError)
    def _invalid(exc):
        code = E.VALIDATION_CONSTRAINT if exc.status_code == 422 else E.VALIDATION_REQUIRED
        return api_error(code, str(exc), status=exc.status_code, details=exc.details)

    @bp.errorhandler(ConflictError)
    def _conflict(exc):
        return api_error(E.CONFLICT_DUPLICATE, str(exc))

    @bp.errorhandler(AuthError)
    def _auth(exc):
        code = E.FORBIDDEN if exc.status_code == 403 else E.UNAUTHORIZED
        return api_error(code, str(exc), status=exc.status_code)

    @bp.errorhandler(SQLAlchemyError)
    def _db_error(exc):
        db.session.rollback()
        log.exception("Database error")
        return api_error(E.DATABASE, "Database error")

    return bp
