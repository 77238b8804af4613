"""
Auth Blueprint — registration, login, profile and admin user management.

  POST   /api/users/register   — create an account (201, no token)
  POST   /api/users/login      — email + password → user + bearer token
  GET    /api/users/profile    — current user
  PUT    /api/users/profile    — self-service update (role is not changeable)
  GET    /api/users            — admin: all users
  PUT    /api/users/<id>       — admin: update any user, including role
  DELETE /api/users/<id>       — admin: delete (never the last admin)
"""

from flask import Blueprint, jsonify

from pmis import limiter
from pmis.blueprints import register_error_handlers, request_payload
from pmis.middleware.jwt_auth import require_auth, require_role
from pmis.middleware.rate_limiter import LOGIN_LIMIT
from pmis.models.auth import ROLE_ADMIN
from pmis.services import user_service
from pmis.services.jwt_service import generate_access_token

auth_bp = Blueprint("auth", __name__, url_prefix="/api/users")
register_error_handlers(auth_bp)

_login_limit = limiter.shared_limit(LOGIN_LIMIT, scope="login")


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Body: { "username", "email", "password", "institution_id", "role" }
    """
    user = user_service.register_user(request_payload())
    return jsonify(user.to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
@_login_limit
def login():
    """
    Body: { "email": "...", "password": "..." }
    Returns the user fields plus ``token`` (Bearer).
    """
    data = request_payload()
    user = user_service.authenticate(data.get("email"), data.get("password"))
    body = user.to_dict()
    body["token"] = generate_access_token(user)
    body["token_type"] = "Bearer"
    return jsonify(body), 200


@auth_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile(identity):
    return jsonify(user_service.get_user_or_404(identity.user_id).to_dict()), 200


@auth_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile(identity):
    user = user_service.get_user_or_404(identity.user_id)
    user = user_service.update_profile(user, request_payload())
    return jsonify(user.to_dict()), 200


@auth_bp.route("", methods=["GET"])
@require_auth
@require_role(ROLE_ADMIN)
def list_users(identity):
    users = user_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users], "total": len(users)}), 200


@auth_bp.route("/<user_id>", methods=["PUT"])
@require_auth
@require_role(ROLE_ADMIN)
def update_user(user_id, identity):
    user = user_service.admin_update_user(user_id, request_payload())
    return jsonify(user.to_dict()), 200


@auth_bp.route("/<user_id>", methods=["DELETE"])
@require_auth
@require_role(ROLE_ADMIN)
def delete_user(user_id, identity):
    user_service.delete_user(user_id)
    return jsonify({"message": "User removed"}), 200
