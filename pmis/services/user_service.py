"""
User Service — registration, authentication, profile and admin user management.

Every function raises the shared domain exceptions (pmis.core.exceptions);
blueprints map them to HTTP status codes. The service owns its commits.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import func, select

from pmis.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from pmis.models import db
from pmis.models.auth import ROLE_ADMIN, ROLES, User
from pmis.utils.crypto import DEFAULT_ROUNDS, hash_password, verify_password
from pmis.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
REGISTER_REQUIRED = ("username", "email", "password", "institution_id", "role")


# ═══════════════════════════════════════════════════════════════
# Validation helpers
# ═══════════════════════════════════════════════════════════════
def _normalize_email(email: str) -> str:
    try:
        # Stored lowercased; login and uniqueness match case-insensitively
        return validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})


def _check_password(password) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    return password


def _check_role(role) -> str:
    if role not in ROLES:
        raise ValidationError(
            f"Invalid role '{role}'", details={"role": f"one of {', '.join(ROLES)}"},
        )
    return role


def _hash(password: str) -> str:
    return hash_password(password, rounds=current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS))


def _ensure_unique(username: str | None = None, email: str | None = None, exclude_id: str | None = None):
    for field, value in (("username", username), ("email", email)):
        if value is None:
            continue
        if field == "email":
            stmt = select(User.id).where(func.lower(User.email) == value.lower())
        else:
            stmt = select(User.id).where(User.username == value)
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        if db.session.execute(stmt).first() is not None:
            raise ConflictError("User", field, value)


def _admin_count() -> int:
    return db.session.execute(select(func.count(User.id)).where(User.role == ROLE_ADMIN)).scalar_one()


# ═══════════════════════════════════════════════════════════════
# Registration / login
# ═══════════════════════════════════════════════════════════════
def register_user(data: dict) -> User:
    """Create a user from a registration payload.

    Required: username, email, password (≥ 6 chars), institution_id, role.
    """
    missing = [f for f in REGISTER_REQUIRED if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            "Please fill all required fields",
            details={f: "required" for f in missing},
        )

    username = str(data["username"]).strip()
    email = _normalize_email(str(data["email"]).strip())
    password = _check_password(data["password"])
    role = _check_role(data["role"])
    institution_id = str(data["institution_id"]).strip()

    _ensure_unique(username=username, email=email)

    user = User(
        username=username,
        email=email,
        password_hash=_hash(password),
        role=role,
        institution_id=institution_id,
    )
    db.session.add(user)
    commit_or_raise("User")
    logger.info("Registered user %s (%s)", user.id, role)
    return user


def authenticate(email: str, password: str) -> User:
    """Return the user for valid credentials, else raise UnauthorizedError."""
    if not email or not password:
        raise ValidationError("Email and password are required")
    email = str(email).strip().lower()
    user = db.session.execute(
        select(User).where(func.lower(User.email) == email)
    ).scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise UnauthorizedError("Invalid email or password")
    return user


# ═══════════════════════════════════════════════════════════════
# Lookup
# ═══════════════════════════════════════════════════════════════
def get_user_or_404(user_id) -> User:
    user = db.session.get(User, str(user_id))
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def list_users() -> list[User]:
    return db.session.execute(select(User).order_by(User.created_at.asc())).scalars().all()


# ═══════════════════════════════════════════════════════════════
# Updates
# ═══════════════════════════════════════════════════════════════
def _apply_common(user: User, data: dict) -> None:
    if data.get("username") not in (None, ""):
        username = str(data["username"]).strip()
        _ensure_unique(username=username, exclude_id=user.id)
        user.username = username
    if data.get("email") not in (None, ""):
        email = _normalize_email(str(data["email"]).strip())
        _ensure_unique(email=email, exclude_id=user.id)
        user.email = email
    if data.get("institution_id") not in (None, ""):
        user.institution_id = str(data["institution_id"]).strip()
    if data.get("password") not in (None, ""):
        user.password_hash = _hash(_check_password(data["password"]))


def update_profile(user: User, data: dict) -> User:
    """Self-service update. ``role`` in the payload is ignored."""
    _apply_common(user, data)
    commit_or_raise("User")
    return user


def admin_update_user(user_id, data: dict) -> User:
    """Admin update, including role changes (never demoting the last admin)."""
    user = get_user_or_404(user_id)
    _apply_common(user, data)
    if data.get("role") not in (None, ""):
        role = _check_role(data["role"])
        if user.role == ROLE_ADMIN and role != ROLE_ADMIN and _admin_count() <= 1:
            raise ConflictError("User", "role", role, message="Cannot demote the last admin")
        user.role = role
    commit_or_raise("User")
    logger.info("User %s updated by admin", user.id)
    return user


def delete_user(user_id) -> None:
    user = get_user_or_404(user_id)
    if user.role == ROLE_ADMIN and _admin_count() <= 1:
        raise ConflictError("User", "role", ROLE_ADMIN, message="Cannot delete the last admin")
    db.session.delete(user)
    commit_or_raise("User")
    logger.info("User %s deleted", user_id)


def create_admin(username: str, email: str, password: str, institution_id: str | None = None) -> User:
    """Bootstrap an admin account (``flask create-admin``)."""
    email = _normalize_email(email)
    _check_password(password)
    _ensure_unique(username=username, email=email)
    user = User(
        username=username,
        email=email,
        password_hash=_hash(password),
        role=ROLE_ADMIN,
        institution_id=institution_id,
    )
    db.session.add(user)
    commit_or_raise("User")
    logger.info("Created admin %s", user.id)
    return user
