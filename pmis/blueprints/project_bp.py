"""
Project Blueprint — project CRUD.

  POST   /api/projects          — create (JSON or multipart with
                                  project_image / project_pdf / extension_pdf)
  GET    /api/projects          — projects visible to the caller
  GET    /api/projects/<ref>    — one project (id or exact name)
  PUT    /api/projects/<id>     — update (creator or admin)
  DELETE /api/projects/<id>     — delete with its progress records (creator or admin)

All routes require a bearer token. Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, jsonify, request

from pmis.blueprints import register_error_handlers, request_payload
from pmis.middleware.jwt_auth import require_auth
from pmis.services import project_service

logger = logging.getLogger(__name__)

project_bp = Blueprint("projects", __name__, url_prefix="/api/projects")
register_error_handlers(project_bp)


@project_bp.route("", methods=["POST"])
@require_auth
def create_project(identity):
    project = project_service.create_project(identity, request_payload(), request.files)
    return jsonify(project.to_dict()), 201


@project_bp.route("", methods=["GET"])
@require_auth
def list_projects(identity):
    projects = project_service.list_projects(identity)
    return jsonify([p.to_dict() for p in projects]), 200


@project_bp.route("/<reference>", methods=["GET"])
@require_auth
def get_project(reference, identity):
    return jsonify(project_service.get_project(identity, reference).to_dict()), 200


@project_bp.route("/<project_id>", methods=["PUT", "PATCH"])
@require_auth
def update_project(project_id, identity):
    project = project_service.update_project(identity, project_id, request_payload(), request.files)
    return jsonify(project.to_dict()), 200


@project_bp.route("/<project_id>", methods=["DELETE"])
@require_auth
def delete_project(project_id, identity):
    project_service.delete_project(identity, project_id)
    return jsonify({"message": "Project removed"}), 200
