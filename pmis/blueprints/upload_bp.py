"""
Upload Blueprint — serves stored attachments.

  GET /api/uploads/<filename>

References are the bare stored filenames returned by ``upload_service``.
"""

from flask import Blueprint, send_from_directory

from pmis.blueprints import register_error_handlers
from pmis.services.upload_service import upload_folder

upload_bp = Blueprint("uploads", __name__, url_prefix="/api/uploads")
register_error_handlers(upload_bp)


@upload_bp.route("/<path:filename>", methods=["GET"])
def serve_upload(filename):
    # send_from_directory refuses paths outside the folder (404)
    return send_from_directory(upload_folder(), filename)
