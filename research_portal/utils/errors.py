"""Standardised API error responses.

Usage
-----
    from research_portal.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Proposal not found")
    return api_error(E.VALIDATION_REQUIRED, "Missing required fields")

Blueprints that call into the service layer register the shared handlers:

    register_api_error_handlers(proposal_bp)
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from research_portal.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from research_portal.models import db

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    INVALID_STATE = "ERR_INVALID_STATE"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.INVALID_STATE: 400,
    E.UNAUTHORIZED: 401,
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
        Human-readable explanation, displayed by the client as-is.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field-level validation errors).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_api_error_handlers(bp) -> None:
    """Map the core exception hierarchy to HTTP responses on *bp*."""

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        details = error.details or {}
        missing_only = bool(details) and all(v == "required" for v in details.values())
        code = E.VALIDATION_REQUIRED if missing_only else E.VALIDATION_INVALID
        return api_error(code, str(error), details=error.details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, error.public_message)

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(InvalidStateError)
    def _handle_invalid_state(error: InvalidStateError):
        return api_error(E.INVALID_STATE, str(error))

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_STATE, str(error))

    @bp.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return api_error(E.UNAUTHORIZED, str(error) or "Authentication required")

    @bp.errorhandler(SQLAlchemyError)
    def _handle_database(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error endpoint=%s", request.endpoint)
        return api_error(E.DATABASE, "Database error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
