"""
Auth Models — users and their workflow roles.

Every user holds exactly one role from ``ROLES`` and belongs to one
institution. ``institution_id`` is matched against ``Project.institution``
for institution-scoped visibility.
"""

import uuid
from datetime import datetime, timezone

from pmis.models import db

ROLE_ADMIN = "admin"
ROLE_PHYSICAL = "physicalStaff"
ROLE_FINANCIAL = "financialStaff"
ROLE_REGISTRAR = "registrar"

ROLES = (ROLE_ADMIN, ROLE_PHYSICAL, ROLE_FINANCIAL, ROLE_REGISTRAR)


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(100), nullable=False, unique=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(
        db.String(30), nullable=False, default=ROLE_PHYSICAL,
        comment="admin | physicalStaff | financialStaff | registrar",
    )
    institution_id = db.Column(db.String(200), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self):
        # password_hash is never serialized
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "institution_id": self.institution_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"
