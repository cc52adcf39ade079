"""Standardised API error responses.

Usage
-----
    from collab.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Team room not found")
    return api_error(E.VALIDATION_REQUIRED, "tool_votes is required")

Service-layer exceptions from ``collab.core.exceptions`` are mapped once by
``register_error_handlers`` so views can let them propagate.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from collab.core.exceptions import (
    AuthenticationError,
    ConflictError,
    DuplicateVoteError,
    InvalidTransitionError,
    NotATeamMemberError,
    NotConfirmedError,
    NotFoundError,
    PermissionDeniedError,
    SubjectClosedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    ALREADY_VOTED = "ERR_ALREADY_VOTED"
    SUBJECT_CLOSED = "ERR_SUBJECT_CLOSED"
    NOT_CONFIRMED = "ERR_NOT_CONFIRMED"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"

    # Authentication – HTTP 401
    UNAUTHORIZED = "ERR_UNAUTHORIZED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_TEAM_MEMBER = "ERR_NOT_TEAM_MEMBER"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.ALREADY_VOTED: 409,
    E.SUBJECT_CLOSED: 409,
    E.NOT_CONFIRMED: 409,
    E.INVALID_TRANSITION: 409,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_TEAM_MEMBER: 403,
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
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload.

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


def register_error_handlers(app) -> None:
    """Map the service exception hierarchy to JSON responses app-wide.

    Flask resolves the handler of the most specific class in the exception's
    MRO, so domain subclasses win over ConflictError / PermissionDeniedError.
    """

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return api_error(E.UNAUTHORIZED, str(error))

    @app.errorhandler(NotATeamMemberError)
    def _handle_not_member(error: NotATeamMemberError):
        return api_error(E.NOT_TEAM_MEMBER, "You are not a member of this team room")

    @app.errorhandler(PermissionDeniedError)
    def _handle_forbidden(error: PermissionDeniedError):
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(DuplicateVoteError)
    def _handle_duplicate_vote(error: DuplicateVoteError):
        return api_error(E.ALREADY_VOTED, "You have already submitted your votes",
                         details={"subject": error.subject})

    @app.errorhandler(SubjectClosedError)
    def _handle_closed(error: SubjectClosedError):
        return api_error(E.SUBJECT_CLOSED, str(error), details={"subject": error.subject})

    @app.errorhandler(NotConfirmedError)
    def _handle_not_confirmed(error: NotConfirmedError):
        return api_error(E.NOT_CONFIRMED, f"{error.subject} is not yet confirmed",
                         details={"subject": error.subject, "confirmed": False})

    @app.errorhandler(InvalidTransitionError)
    def _handle_transition(error: InvalidTransitionError):
        return api_error(E.INVALID_TRANSITION, str(error),
                         details={"current": error.current, "target": error.target})

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_STATE, str(error))

    @app.errorhandler(404)
    def _not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def _rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return {"error": error.description}, error.code
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
