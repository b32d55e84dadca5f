"""
User Blueprint — admin user management.

  GET    /api/v1/users              — list (?role=, ?search=, page/limit)
  POST   /api/v1/users              — create (optionally with student/lecturer profile)
  GET    /api/v1/users/<id>         — detail
  PUT    /api/v1/users/<id>         — update username/email/full_name/password/is_active
  DELETE /api/v1/users/<id>         — deactivate + revoke sessions
  PUT    /api/v1/users/<id>/role    — change role

Every route requires the ``user:manage`` permission.
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, paginated, pagination_args
from app.middleware.permission_required import require_permission
from app.services.container import get_services
from app.utils.errors import E, api_error

user_bp = Blueprint("user_bp", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
@require_permission("user:manage")
def list_users():
    page, limit = pagination_args()
    result = get_services().users.list_users(
        page=page,
        limit=limit,
        role_name=request.args.get("role") or None,
        search=request.args.get("search") or None,
    )
    return jsonify(paginated(result, [u.to_dict() for u in result.items])), 200


@user_bp.route("", methods=["POST"])
@require_permission("user:manage")
def create_user():
    """
    Body: { "username", "email", "password", "full_name", "role" | "role_id",
            "student": {"student_number", "program_study", "academic_year", "advisor_id"},
            "lecturer": {"lecturer_number", "department"} }
    """
    data = json_body()
    user = get_services().users.create_user(data)
    return jsonify(user.to_dict(include_permissions=True)), 201


@user_bp.route("/<user_id>", methods=["GET"])
@require_permission("user:manage")
def get_user(user_id):
    user = get_services().users.get_user(user_id)
    return jsonify(user.to_dict(include_permissions=True)), 200


@user_bp.route("/<user_id>", methods=["PUT"])
@require_permission("user:manage")
def update_user(user_id):
    data = json_body()
    user = get_services().users.update_user(user_id, data)
    return jsonify(user.to_dict()), 200


@user_bp.route("/<user_id>", methods=["DELETE"])
@require_permission("user:manage")
def delete_user(user_id):
    user = get_services().users.delete_user(user_id)
    return jsonify({"message": "User deactivated", "user": user.to_dict()}), 200


@user_bp.route("/<user_id>/role", methods=["PUT"])
@require_permission("user:manage")
def update_user_role(user_id):
    """Body: { "role_id": "..." } or { "role": "advisor" }"""
    data = json_body()
    role_id = data.get("role_id")
    role_name = data.get("role")
    if not role_id and not role_name:
        return api_error(E.VALIDATION_REQUIRED, "role_id or role is required")
    user = get_services().users.update_user_role(user_id, role_id=role_id, role_name=role_name)
    return jsonify(user.to_dict(include_permissions=True)), 200
