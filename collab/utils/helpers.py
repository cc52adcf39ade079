"""Shared request helpers for blueprints."""

from flask import current_app, request

from collab.core.exceptions import AuthenticationError, ValidationError


def current_user_id():
    """Acting user from the ``X-User-Id`` header set by the auth gateway.

    Returns None when absent; membership checks reject it downstream.
    """
    raw = request.headers.get("X-User-Id", "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("X-User-Id header must be an integer",
                              details={"X-User-Id": raw}) from None


def require_user_id() -> int:
    """Like ``current_user_id`` but raises AuthenticationError (401) when absent."""
    user_id = current_user_id()
    if user_id is None:
        raise AuthenticationError("X-User-Id header is required")
    return user_id


def is_admin(user_id) -> bool:
    raw = current_app.config.get("ADMIN_USER_IDS", "") or ""
    admins = {p.strip() for p in str(raw).split(",") if p.strip()}
    return user_id is not None and str(user_id) in admins


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def pagination_args(default_limit: int = 50, max_limit: int = 200) -> tuple[int, int]:
    """Parse limit/offset query parameters, clamped to sane bounds."""
    try:
        limit = int(request.args.get("limit", default_limit))
        offset = int(request.args.get("offset", 0))
    except ValueError:
        raise ValidationError("limit and offset must be integers") from None
    return max(1, min(limit, max_limit)), max(0, offset)
