"""
Lecturer Blueprint — lecturer profiles and advisee lists.

  GET /api/v1/lecturers                   — list (role-scoped)
  GET /api/v1/lecturers/<id>/advisees     — students advised by a lecturer
"""

from flask import Blueprint, jsonify

from app.blueprints import paginated, pagination_args
from app.middleware.permission_required import current_principal, require_permission
from app.services.container import get_services

lecturer_bp = Blueprint("lecturer_bp", __name__, url_prefix="/api/v1/lecturers")


@lecturer_bp.route("", methods=["GET"])
@require_permission("lecturer:read")
def list_lecturers():
    page, limit = pagination_args()
    result = get_services().lecturers.list_lecturers(current_principal(), page=page, limit=limit)
    return jsonify(paginated(result, [lec.to_dict() for lec in result.items])), 200


@lecturer_bp.route("/<lecturer_id>/advisees", methods=["GET"])
@require_permission("student:read")
def list_advisees(lecturer_id):
    page, limit = pagination_args()
    result = get_services().lecturers.list_advisees(
        lecturer_id, current_principal(), page=page, limit=limit,
    )
    return jsonify(paginated(result, [s.to_dict() for s in result.items])), 200
