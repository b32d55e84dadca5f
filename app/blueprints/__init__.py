"""
Achievement Tracker
Blueprint registry and shared request/response helpers.
"""

from flask import request

from app.core.exceptions import ValidationError
from app.utils.helpers import normalize_pagination


def json_body():
    """Parsed JSON request body as a dict; an absent body reads as ``{}``.

    Raises:
        ValidationError: the body parsed to something other than an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            details={"body": f"expected object, got {type(data).__name__}"},
        )
    return data


def pagination_args():
    """Read ``page`` / ``limit`` query params, clamped to the allowed range.

    Query params:
        page  — 1-based page number (default 1)
        limit — items per page (default 10, capped at 100)

    Returns:
        (page, limit)
    """
    return normalize_pagination(request.args.get("page"), request.args.get("limit"))


def paginated(page, items):
    """Standard list envelope: ``{"items": [...], "pagination": {...}}``."""
    return {"items": items, "pagination": page.pagination_dict()}
