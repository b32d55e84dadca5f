"""
Student Blueprint — student profiles and their achievements.

  GET /api/v1/students                          — list (role-scoped)
  GET /api/v1/students/me                       — caller's own profile
  GET /api/v1/students/<id>                     — single profile
  GET /api/v1/students/<id>/achievements        — achievements of one student
  PUT /api/v1/students/<id>/advisor             — assign / clear advisor (admin)
"""

from flask import Blueprint, jsonify

from app.blueprints import json_body, paginated, pagination_args
from app.blueprints.achievement_bp import status_filter
from app.middleware.permission_required import current_principal, require_permission, require_role
from app.services.container import get_services
from app.services.principal import RoleKind

student_bp = Blueprint("student_bp", __name__, url_prefix="/api/v1/students")


@student_bp.route("", methods=["GET"])
@require_permission("student:read")
def list_students():
    page, limit = pagination_args()
    result = get_services().students.list_students(current_principal(), page=page, limit=limit)
    return jsonify(paginated(result, [s.to_dict() for s in result.items])), 200


@student_bp.route("/me", methods=["GET"])
@require_permission("student:read")
def my_profile():
    student = get_services().students.get_own_profile(current_principal())
    return jsonify(student.to_dict()), 200


@student_bp.route("/<student_id>", methods=["GET"])
@require_permission("student:read")
def get_student(student_id):
    student = get_services().students.get_student(student_id, current_principal())
    return jsonify(student.to_dict()), 200


@student_bp.route("/<student_id>/achievements", methods=["GET"])
@require_permission("achievement:read")
def student_achievements(student_id):
    page, limit = pagination_args()
    lifecycle = get_services().lifecycle
    result = lifecycle.list_for_student(
        student_id, current_principal(), status=status_filter(), page=page, limit=limit,
    )
    return jsonify(paginated(result, lifecycle.summarize(result.items))), 200


# ═══════════════════════════════════════════════════════════════
# PUT /api/v1/students/<id>/advisor
# ═══════════════════════════════════════════════════════════════
@student_bp.route("/<student_id>/advisor", methods=["PUT"])
@require_permission("student:manage")
@require_role(RoleKind.ADMIN)
def update_advisor(student_id):
    """
    Assign an advisor to a student; ``null`` clears the assignment.

    Body: { "advisor_id": "<lecturer id>" | null }
    """
    data = json_body()
    student = get_services().students.update_student_advisor(
        student_id, data.get("advisor_id") or None, current_principal(),
    )
    return jsonify(student.to_dict()), 200
