"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/login       — Username (or email) + password → JWT pair
  POST /api/v1/auth/refresh     — Refresh token → new token pair (rotation)
  POST /api/v1/auth/logout      — Revoke one refresh token, or every session
  GET  /api/v1/auth/profile     — Current user with role, permissions, profile
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body
from app.middleware.permission_required import current_principal, login_required
from app.services.container import get_services
from app.utils.errors import E, api_error

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


def _client_info():
    return request.remote_addr, request.headers.get("User-Agent", "")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with username or email + password, return JWT pair.

    Body: { "username": "...", "password": "..." }   ("email" also accepted)
    """
    data = json_body()
    identifier = (data.get("username") or data.get("email") or "").strip()
    password = data.get("password", "")

    if not identifier or not password:
        return api_error(E.VALIDATION_REQUIRED, "Username and password are required")

    identity = get_services().identity
    principal, permissions, user = identity.authenticate(identifier, password)
    tokens = identity.issue_tokens(user, *_client_info())

    user_dict = user.to_dict()
    user_dict["permissions"] = permissions
    return jsonify({**tokens, "user": user_dict}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new token pair (token rotation).

    Body: { "refresh_token": "..." }
    """
    data = json_body()
    refresh_token = data.get("refresh_token", "")

    if not refresh_token:
        return api_error(E.VALIDATION_REQUIRED, "Refresh token is required")

    tokens = get_services().identity.refresh(refresh_token, *_client_info())
    return jsonify(tokens), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """
    Revoke the given refresh token; without one, revoke all sessions of
    the caller.

    Body: { "refresh_token": "..." }  (optional)
    """
    data = json_body()
    refresh_token = data.get("refresh_token") or None
    get_services().identity.logout(
        refresh_token=refresh_token, user_id=current_principal().user_id,
    )
    return jsonify({"message": "Logged out successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/profile
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/profile", methods=["GET"])
@login_required
def profile():
    """Return the current user's profile with role and permissions."""
    services = get_services()
    principal = current_principal()
    user = services.users.get_user(principal.user_id)

    result = user.to_dict()
    result["permissions"] = sorted(principal.permissions)

    student = services.directory.find_student_by_user_id(user.id)
    if student is not None:
        result["student"] = student.to_dict(include_user=False)
    lecturer = services.directory.find_lecturer_by_user_id(user.id)
    if lecturer is not None:
        result["lecturer"] = lecturer.to_dict(include_user=False)

    return jsonify(result), 200
