"""
Progress Blueprint — progress records and their draft → submitted workflow.

  POST   /api/progress                     — create a draft (physicalStaff)
  GET    /api/progress?status=&project_id= — visible records
  GET    /api/progress/<ref>               — one record by id, or the records of a project id
  PUT    /api/progress/<id>                — save draft
  PATCH  /api/progress/<id>                — save draft (partial)
  POST   /api/progress/save-draft          — upsert keyed by optional ``id``
  POST   /api/progress/<id>/submit         — draft → submitted (registrar / admin)
  POST   /api/progress/<id>/reopen         — submitted → draft (admin, if enabled)
  DELETE /api/progress/<id>                — admin or project creator
  GET    /api/progress/<id>/field-access   — ?editing=&currency= → per-field access map
  GET    /api/progress/<id>/financial      — ?currency= → converted financial figures

Save responses carry ``warnings`` (quarterly target checks) next to the record.
"""

import logging

from flask import Blueprint, jsonify, request

from pmis.blueprints import arg_flag, register_error_handlers, request_payload
from pmis.middleware.jwt_auth import require_auth
from pmis.services import progress_service

logger = logging.getLogger(__name__)

progress_bp = Blueprint("progress", __name__, url_prefix="/api/progress")
register_error_handlers(progress_bp)


def _saved(record, warnings, status=200):
    body = record.to_dict()
    body["warnings"] = warnings
    return jsonify(body), status


@progress_bp.route("", methods=["POST"])
@require_auth
def create_progress(identity):
    record, warnings = progress_service.create_progress(identity, request_payload(), request.files)
    return _saved(record, warnings, 201)


@progress_bp.route("", methods=["GET"])
@require_auth
def list_progress(identity):
    records = progress_service.list_progress(
        identity,
        status=request.args.get("status") or None,
        project_id=request.args.get("project_id") or request.args.get("projectId") or None,
    )
    return jsonify([r.to_dict(include_project=True) for r in records]), 200


@progress_bp.route("/save-draft", methods=["POST"])
@require_auth
def save_draft(identity):
    data = request_payload()
    is_update = bool(str(data.get("id") or "").strip())
    record, warnings = progress_service.upsert_draft(identity, data, request.files)
    return _saved(record, warnings, 200 if is_update else 201)


@progress_bp.route("/<reference>", methods=["GET"])
@require_auth
def get_progress(reference, identity):
    """A progress id returns that record; a project id returns its records (maybe [])."""
    resolution = progress_service.get_progress(identity, reference)
    if resolution.is_record:
        return jsonify(resolution.record.to_dict(include_project=True)), 200
    return jsonify([r.to_dict() for r in resolution.records]), 200


@progress_bp.route("/<progress_id>", methods=["PUT", "PATCH"])
@require_auth
def update_progress(progress_id, identity):
    record, warnings = progress_service.save_draft(
        identity, progress_id, request_payload(), request.files,
    )
    return _saved(record, warnings)


@progress_bp.route("/<progress_id>/submit", methods=["POST"])
@require_auth
def submit_progress(progress_id, identity):
    record = progress_service.submit_progress(identity, progress_id)
    return jsonify(record.to_dict()), 200


@progress_bp.route("/<progress_id>/reopen", methods=["POST"])
@require_auth
def reopen_progress(progress_id, identity):
    record = progress_service.reopen_progress(identity, progress_id)
    return jsonify(record.to_dict()), 200


@progress_bp.route("/<progress_id>", methods=["DELETE"])
@require_auth
def delete_progress(progress_id, identity):
    progress_service.delete_progress(identity, progress_id)
    return jsonify({"message": "Progress record removed"}), 200


@progress_bp.route("/<progress_id>/field-access", methods=["GET"])
@require_auth
def field_access(progress_id, identity):
    result = progress_service.field_access(
        identity, progress_id,
        editing=arg_flag("editing", default=True),
        currency=request.args.get("currency"),
    )
    return jsonify(result), 200


@progress_bp.route("/<progress_id>/financial", methods=["GET"])
@require_auth
def financial(progress_id, identity):
    return jsonify(progress_service.financial_view(identity, progress_id, request.args.get("currency"))), 200
