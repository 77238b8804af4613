"""
JWT Auth Middleware — turns the bearer token into an explicit Identity.

Protected views are wrapped with ``require_auth``; the decorator verifies
the token, reloads the user and passes ``identity=Identity(...)`` into the
view as a keyword argument. Services receive that identity explicitly.

Usage:
    @progress_bp.route("", methods=["POST"])
    @require_auth
    def create_progress(identity):
        ...

    @auth_bp.route("", methods=["GET"])
    @require_auth
    @require_role(ROLE_ADMIN)
    def list_users(identity):
        ...

Failures raise UnauthorizedError / ForbiddenError, which the blueprint
error handlers render as 401 / 403.
"""

import functools
import logging

import jwt as pyjwt
from flask import g, request

from pmis.core.exceptions import ForbiddenError, UnauthorizedError
from pmis.core.identity import Identity
from pmis.models import db
from pmis.models.auth import User
from pmis.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()  # Strip "Bearer "
    return token or None


def resolve_identity() -> Identity:
    """Verify the request's bearer token and load the caller.

    Raises:
        UnauthorizedError: token missing, expired, invalid, or its user
                           no longer exists.
    """
    token = _bearer_token()
    if token is None:
        raise UnauthorizedError("Not authorized, no token")

    try:
        payload = decode_access_token(token)
    except pyjwt.ExpiredSignatureError:
        raise UnauthorizedError("Not authorized, token expired")
    except pyjwt.InvalidTokenError:
        raise UnauthorizedError("Not authorized, token failed")

    user = db.session.get(User, payload["sub"])
    if user is None:
        logger.warning("Token for unknown user %s", payload["sub"])
        raise UnauthorizedError("Not authorized, user not found")

    identity = Identity.from_user(user)
    g.identity = identity  # read by request logging only
    return identity


def require_auth(f):
    """Decorator: require a valid bearer token; inject ``identity``."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        kwargs["identity"] = resolve_identity()
        return f(*args, **kwargs)
    return decorated


def require_role(*roles: str):
    """Decorator (inside ``require_auth``): restrict a view to ``roles``."""
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            identity = kwargs["identity"]
            if identity.role not in roles:
                logger.warning(
                    "User %s (%s) denied: %s requires %s",
                    identity.user_id, identity.role, f.__name__, roles,
                )
                raise ForbiddenError(f"Role '{identity.role}' is not allowed here")
            return f(*args, **kwargs)
        return decorated
    return decorator
