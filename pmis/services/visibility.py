"""
Ownership / Visibility Filter — which projects and progress rows a caller sees.

Read access:   admin, or project creator, or same institution
Write access:  admin, or project creator (institution peers may view only)

Progress records inherit visibility from their owning project.
"""

import logging

from sqlalchemy import or_, select

from pmis.core.exceptions import ForbiddenError
from pmis.models import db
from pmis.models.progress import ProgressRecord
from pmis.models.project import Project

logger = logging.getLogger(__name__)


def _visibility_clause(identity):
    clauses = [Project.created_by == identity.user_id]
    if identity.institution_id:
        clauses.append(Project.institution == identity.institution_id)
    return or_(*clauses)


def visible_projects_query(identity):
    stmt = select(Project)
    if not identity.is_admin:
        stmt = stmt.where(_visibility_clause(identity))
    return stmt


def list_visible_projects(identity) -> list[Project]:
    """All projects the caller may read, newest first."""
    stmt = visible_projects_query(identity).order_by(Project.created_at.desc())
    return db.session.execute(stmt).scalars().all()


def can_view_project(identity, project) -> bool:
    if identity.is_admin:
        return True
    if project.created_by is not None and project.created_by == identity.user_id:
        return True
    return bool(identity.institution_id) and project.institution == identity.institution_id


def can_mutate_project(identity, project) -> bool:
    if identity.is_admin:
        return True
    return project.created_by is not None and project.created_by == identity.user_id


def ensure_can_view(identity, project) -> None:
    if not can_view_project(identity, project):
        logger.warning("User %s denied read on project %s", identity.user_id, project.id)
        raise ForbiddenError("You do not have access to this project")


def ensure_can_mutate(identity, project) -> None:
    if not can_mutate_project(identity, project):
        logger.warning("User %s denied write on project %s", identity.user_id, project.id)
        raise ForbiddenError("Only the project creator or an admin can modify this project")


def visible_progress_query(identity, status=None, project_id=None):
    """Progress records on visible projects, optionally filtered."""
    stmt = select(ProgressRecord).join(Project, Project.id == ProgressRecord.project_id)
    if not identity.is_admin:
        stmt = stmt.where(_visibility_clause(identity))
    if status:
        stmt = stmt.where(ProgressRecord.status == status)
    if project_id:
        stmt = stmt.where(ProgressRecord.project_id == str(project_id))
    return stmt.order_by(ProgressRecord.created_at.asc(), ProgressRecord.id.asc())


def list_visible_progress(identity, status=None, project_id=None) -> list[ProgressRecord]:
    return db.session.execute(visible_progress_query(identity, status, project_id)).scalars().all()
