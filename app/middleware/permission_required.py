"""
Permission Decorators — route protection on top of g.principal.

Usage:
    @achievement_bp.route("", methods=["POST"])
    @require_permission("achievement:create")
    def create_achievement():
        ...

    @auth_bp.route("/profile", methods=["GET"])
    @login_required
    def profile():
        ...

Anonymous requests get 401; authenticated principals without the
permission get 403. Admins pass every permission check.
"""

import functools
import logging

from flask import g

from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def current_principal():
    return getattr(g, "principal", None)


def _unauthenticated():
    return api_error(E.UNAUTHORIZED, getattr(g, "auth_error", None) or "Authentication required")


def login_required(f):
    """Decorator: require any authenticated principal."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_principal() is None:
            return _unauthenticated()
        return f(*args, **kwargs)
    return decorated


def require_permission(codename: str):
    """
    Decorator: require the principal to hold a specific permission.

    Args:
        codename: Permission name, e.g. "achievement:verify"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            principal = current_principal()
            if principal is None:
                return _unauthenticated()

            if not principal.has_permission(codename):
                logger.warning(
                    "User %s denied: missing permission '%s' on %s",
                    principal.user_id, codename, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN, "Permission denied", details={"required": codename},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_role(*role_kinds):
    """Decorator: require the principal's RoleKind to be one of ``role_kinds``."""
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            principal = current_principal()
            if principal is None:
                return _unauthenticated()

            if principal.role_kind not in role_kinds:
                logger.warning(
                    "User %s denied: role %r not in %s on %s",
                    principal.user_id, principal.role_name,
                    [k.value for k in role_kinds], f.__name__,
                )
                return api_error(E.FORBIDDEN, "Permission denied")

            return f(*args, **kwargs)
        return decorated
    return decorator
