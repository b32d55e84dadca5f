"""JSON error envelope shared by blueprints and the app-level error handlers.

Every error body has the same shape::

    {"error": "<human readable>", "code": "ERR_...", "details": {...}}

``details`` is omitted when empty. Blueprints return ``api_error(...)``
for request-shape problems they detect themselves; domain exceptions are
rendered through the same helper by the handlers registered in
``create_app``.

    from app.utils.errors import api_error, E

    return api_error(E.VALIDATION_REQUIRED, "File is required", details={"file": "required"})
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes (``ERR_`` prefix)."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    NOT_FOUND = "ERR_NOT_FOUND"

    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"  # unique username / email / number
    CONFLICT_STATE = "ERR_CONFLICT_STATE"          # workflow transition not allowed

    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"

    INTERNAL = "ERR_INTERNAL"
    DEPENDENCY = "ERR_DEPENDENCY"                  # database / document / blob store down


STATUS_FOR_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.PAYLOAD_TOO_LARGE: 413,
    E.INTERNAL: 500,
    E.DEPENDENCY: 503,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for ``code``.

    The HTTP status defaults to ``STATUS_FOR_CODE[code]`` (400 for codes
    not in the table) unless ``status`` is given.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_FOR_CODE.get(code, 400)
