"""
Report Blueprint — verified-achievement statistics.

  GET /api/v1/reports/statistics          — scoped to the caller's role
  GET /api/v1/reports/student/<id>        — one student's totals
"""

from flask import Blueprint, jsonify

from app.middleware.permission_required import current_principal, require_permission
from app.services.container import get_services

report_bp = Blueprint("report_bp", __name__, url_prefix="/api/v1/reports")


@report_bp.route("/statistics", methods=["GET"])
@require_permission("report:read")
def statistics():
    return jsonify(get_services().reports.statistics_for(current_principal())), 200


@report_bp.route("/student/<student_id>", methods=["GET"])
@require_permission("report:read")
def student_statistics(student_id):
    stats = get_services().reports.student_statistics(student_id, current_principal())
    return jsonify(stats), 200
