"""
Upload Blueprint — serves stored attachment files.

  GET /uploads/<name>
"""

from flask import Blueprint, send_from_directory

from app.services.container import get_services

upload_bp = Blueprint("upload_bp", __name__, url_prefix="/uploads")


@upload_bp.route("/<path:name>", methods=["GET"])
def serve_upload(name):
    blobs = get_services().blobs
    path = blobs.resolve(name)
    return send_from_directory(blobs.root, path.name)
