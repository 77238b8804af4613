"""
Request-scoped identity.

Built by the JWT middleware for each request and passed explicitly into
views and services. Nothing about the caller is held in module globals.
"""

from dataclasses import dataclass

from pmis.models.auth import ROLE_ADMIN


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
    institution_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(user_id=user.id, role=user.role, institution_id=user.institution_id)
