"""
JWT Auth Middleware — parses the bearer token, sets g.principal.

For every /api/v1/ request outside JWT_SKIP_PREFIXES:
  - valid token   → g.principal = Principal(...)
  - missing/bad   → g.principal = None, g.auth_error = reason

Routes decide what to do with an anonymous request through the
decorators in app.middleware.permission_required.
"""

import logging

from flask import g, request

from app.core.exceptions import AuthenticationError
from app.services.container import get_services

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.principal = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        token = bearer_token()
        if token is None:
            g.auth_error = "Missing bearer token"
            return

        try:
            g.principal = get_services().identity.verify(token)
        except AuthenticationError as exc:
            g.auth_error = str(exc)
            logger.debug("Bearer token rejected on %s: %s", path, exc)
