"""
Project Service — create/read/update/delete for projects.

Ownership rules come from ``visibility``: any institution peer may read a
project, only its creator or an admin may change or delete it. The service
owns its commits.
"""

import logging

from flask import current_app
from sqlalchemy import delete

from pmis.core.exceptions import ValidationError
from pmis.models import db
from pmis.models.progress import ProgressRecord
from pmis.models.project import (
    DEPARTMENT_CATEGORIES,
    DEPARTMENT_TYPES,
    EXTENDED_CHOICES,
    PROJECT_FILE_FIELDS,
    PROJECT_WRITABLE_FIELDS,
    Project,
)
from pmis.services import upload_service, visibility
from pmis.services.progress_calculator import normalize_currency
from pmis.services.record_resolution import resolve_project
from pmis.utils.helpers import coerce_fields, commit_or_raise

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("project_name", "start_date", "estimated_end_date")

_CHOICES = {
    "department_type": DEPARTMENT_TYPES,
    "department_category": DEPARTMENT_CATEGORIES,
    "project_extended": EXTENDED_CHOICES,
}


def _clean(values: dict) -> dict:
    """Drop blank values ("not provided"); blank text clears a nullable text column."""
    columns = Project.__table__.columns
    cleaned = {}
    for name, value in values.items():
        if value is None:
            column = columns[name]
            if column.nullable and isinstance(column.type, (db.String, db.Text)):
                cleaned[name] = None
            continue
        cleaned[name] = value
    return cleaned


def _validate(values: dict, project: Project | None) -> None:
    for field, choices in _CHOICES.items():
        value = values.get(field)
        if value is not None and value not in choices:
            raise ValidationError(
                f"Invalid {field} '{value}'", details={field: f"one of {', '.join(choices)}"},
            )
    if values.get("tec_currency") is not None:
        values["tec_currency"] = normalize_currency(values["tec_currency"])
    if "project_name" in values and not (values["project_name"] or "").strip():
        raise ValidationError("project_name is required", details={"project_name": "required"})

    if current_app.config.get("PROJECT_ENFORCE_DATE_ORDER", True):
        start = values.get("start_date", getattr(project, "start_date", None))
        end = values.get("estimated_end_date", getattr(project, "estimated_end_date", None))
        if start and end and start > end:
            raise ValidationError(
                "start_date must be on or before estimated_end_date",
                details={"start_date": str(start), "estimated_end_date": str(end)},
            )


def _form_values(data: dict) -> dict:
    return _clean(coerce_fields(Project, data, PROJECT_WRITABLE_FIELDS))


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def create_project(identity, data: dict, files=None) -> Project:
    """Create a project owned by the caller.

    ``data`` may come from JSON or a multipart form; ``files`` is
    ``request.files`` and may carry project_image / project_pdf /
    extension_pdf.
    """
    values = _form_values(data)
    missing = [f for f in REQUIRED_FIELDS if values.get(f) is None]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )
    _validate(values, None)
    values.update(upload_service.save_uploads(files, PROJECT_FILE_FIELDS))

    project = Project(created_by=identity.user_id, **values)
    db.session.add(project)
    commit_or_raise("Project")
    logger.info("Project created", extra={"project_id": project.id, "user_id": identity.user_id})
    return project


def list_projects(identity) -> list[Project]:
    return visibility.list_visible_projects(identity)


def get_project(identity, reference) -> Project:
    """Fetch by id (or exact name) and check read access."""
    project = resolve_project(reference, identity)
    visibility.ensure_can_view(identity, project)
    return project


def update_project(identity, project_id, data: dict, files=None) -> Project:
    """Partial update; ``created_by`` is never reassigned."""
    project = resolve_project(project_id, identity)
    visibility.ensure_can_mutate(identity, project)

    values = _form_values(data)
    _validate(values, project)
    values.update(upload_service.save_uploads(files, PROJECT_FILE_FIELDS))

    for name, value in values.items():
        setattr(project, name, value)
    commit_or_raise("Project")
    logger.info("Project updated", extra={"project_id": project.id, "user_id": identity.user_id})
    return project


def delete_project(identity, project_id) -> None:
    """Delete a project and all of its progress records."""
    project = resolve_project(project_id, identity)
    visibility.ensure_can_mutate(identity, project)
    db.session.execute(delete(ProgressRecord).where(ProgressRecord.project_id == project.id))
    db.session.delete(project)
    commit_or_raise("Project")
    logger.info("Project deleted", extra={"project_id": project_id, "user_id": identity.user_id})
