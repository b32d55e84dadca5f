"""
Achievement Blueprint — achievement CRUD and workflow transitions.

  GET    /api/v1/achievements                     — list (role-scoped)
  POST   /api/v1/achievements                     — create draft (student)
  GET    /api/v1/achievements/<id>                — detail (reference + content)
  PUT    /api/v1/achievements/<id>                — edit content (draft/rejected)
  DELETE /api/v1/achievements/<id>                — soft delete (draft)
  POST   /api/v1/achievements/<id>/submit         — draft|rejected → submitted
  POST   /api/v1/achievements/<id>/verify         — submitted → verified
  POST   /api/v1/achievements/<id>/reject         — submitted → rejected
  GET    /api/v1/achievements/<id>/history        — status history
  POST   /api/v1/achievements/<id>/attachments    — multipart upload ("file")

Transitions answer 200 with ``{"achievement", "outcome", "warnings"}``;
``outcome`` is "committed_with_warnings" when a history or notification
write could not be recorded.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from app.blueprints import json_body, paginated, pagination_args
from app.core.exceptions import ValidationError
from app.middleware.permission_required import current_principal, require_permission
from app.models.achievement import ACHIEVEMENT_STATUSES, STATUS_DELETED
from app.services.container import get_services
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

achievement_bp = Blueprint("achievement_bp", __name__, url_prefix="/api/v1/achievements")

LISTABLE_STATUSES = tuple(s for s in ACHIEVEMENT_STATUSES if s != STATUS_DELETED)


def status_filter():
    """Optional ``status`` query param; deleted achievements are never listed."""
    status = request.args.get("status") or None
    if status is not None and status not in LISTABLE_STATUSES:
        raise ValidationError(
            f"Invalid status filter '{status}'",
            details={"status": f"must be one of {', '.join(LISTABLE_STATUSES)}"},
        )
    return status


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/achievements
# ═══════════════════════════════════════════════════════════════
@achievement_bp.route("", methods=["GET"])
@require_permission("achievement:read")
def list_achievements():
    page, limit = pagination_args()
    lifecycle = get_services().lifecycle
    result = lifecycle.list_for_principal(
        current_principal(), status=status_filter(), page=page, limit=limit,
    )
    return jsonify(paginated(result, lifecycle.summarize(result.items))), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/achievements
# ═══════════════════════════════════════════════════════════════
@achievement_bp.route("", methods=["POST"])
@require_permission("achievement:create")
def create_achievement():
    """
    Create a draft achievement for the calling student.

    Body: { "title": "...", "achievement_type": "competition", "description": "...",
            "details": {...}, "tags": [...], "points": 10, "level": "national" }

    Header ``Idempotency-Key`` (optional): repeating a request with the same
    key returns the achievement created by the first one.
    """
    data = json_body()
    lifecycle = get_services().lifecycle
    reference = lifecycle.create(
        current_principal(), data,
        idempotency_key=request.headers.get("Idempotency-Key") or None,
    )
    return jsonify(lifecycle.get_detail(reference.id).to_dict()), 201


# ═══════════════════════════════════════════════════════════════
# GET / PUT / DELETE /api/v1/achievements/<id>
# ═══════════════════════════════════════════════════════════════
@achievement_bp.route("/<achievement_id>", methods=["GET"])
@require_permission("achievement:read")
def get_achievement(achievement_id):
    detail = get_services().lifecycle.get_detail(achievement_id, current_principal())
    return jsonify(detail.to_dict()), 200


@achievement_bp.route("/<achievement_id>", methods=["PUT"])
@require_permission("achievement:update")
def update_achievement(achievement_id):
    data = json_body()
    detail = get_services().lifecycle.update(achievement_id, data, current_principal())
    return jsonify(detail.to_dict()), 200


@achievement_bp.route("/<achievement_id>", methods=["DELETE"])
@require_permission("achievement:delete")
def delete_achievement(achievement_id):
    result = get_services().lifecycle.delete(achievement_id, current_principal())
    return jsonify(result.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Workflow transitions
# ═══════════════════════════════════════════════════════════════
@achievement_bp.route("/<achievement_id>/submit", methods=["POST"])
@require_permission("achievement:update")
def submit_achievement(achievement_id):
    result = get_services().lifecycle.submit(achievement_id, current_principal())
    return jsonify(result.to_dict()), 200


@achievement_bp.route("/<achievement_id>/verify", methods=["POST"])
@require_permission("achievement:verify")
def verify_achievement(achievement_id):
    result = get_services().lifecycle.verify(achievement_id, current_principal())
    return jsonify(result.to_dict()), 200


@achievement_bp.route("/<achievement_id>/reject", methods=["POST"])
@require_permission("achievement:verify")
def reject_achievement(achievement_id):
    """
    Reject a submitted achievement.

    Body: { "rejection_note": "..." }   ("note" also accepted)
    """
    data = json_body()
    note = data.get("rejection_note", data.get("note"))
    result = get_services().lifecycle.reject(achievement_id, current_principal(), note)
    return jsonify(result.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/achievements/<id>/history
# ═══════════════════════════════════════════════════════════════
@achievement_bp.route("/<achievement_id>/history", methods=["GET"])
@require_permission("achievement:read")
def achievement_history(achievement_id):
    history = get_services().lifecycle.get_history(achievement_id, current_principal())
    return jsonify({"achievement_id": achievement_id, "history": history}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/achievements/<id>/attachments
# ═══════════════════════════════════════════════════════════════
@achievement_bp.route("/<achievement_id>/attachments", methods=["POST"])
@require_permission("achievement:update")
def upload_attachment(achievement_id):
    """Multipart upload; the file part must be named ``file``."""
    upload = request.files.get("file")
    if upload is None:
        return api_error(E.VALIDATION_REQUIRED, "File is required", details={"file": "required"})

    data = upload.read()
    max_bytes = current_app.config.get("UPLOAD_MAX_BYTES")
    if max_bytes and len(data) > max_bytes:
        return api_error(
            E.PAYLOAD_TOO_LARGE, "File too large", details={"max_bytes": max_bytes},
        )

    attachment = get_services().lifecycle.upload_attachment(
        achievement_id, current_principal(), data, upload.filename, upload.mimetype,
    )
    return jsonify(attachment), 201
