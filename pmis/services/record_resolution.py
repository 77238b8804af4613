"""
Record Resolution — turn the references the SPA sends into canonical rows.

The frontend reuses one route/field position for two lookups, so each
resolver documents its fallback order instead of sniffing types inline in
every handler.

resolve_project(reference, identity=None):
    1. id-shaped → Project by id
    2. otherwise (or id miss) → Project by exact project_name, preferring
       one the caller can see when an identity is given
    3. NotFoundError

resolve_progress_or_list_by_project(reference):
    1. id-shaped → ProgressRecord by id  → ProgressResolution(kind="record")
    2. id miss, or not id-shaped → records whose project_id == reference
       → ProgressResolution(kind="list") (possibly empty)
"""

from dataclasses import dataclass, field

from sqlalchemy import select

from pmis.core.exceptions import NotFoundError, ValidationError
from pmis.models import db
from pmis.models.progress import ProgressRecord
from pmis.models.project import Project
from pmis.services.visibility import visible_projects_query
from pmis.utils.helpers import is_canonical_id

KIND_RECORD = "record"
KIND_LIST = "list"


@dataclass
class ProgressResolution:
    kind: str
    record: ProgressRecord | None = None
    records: list = field(default_factory=list)

    @property
    def is_record(self) -> bool:
        return self.kind == KIND_RECORD


def _oldest_by_name(stmt, reference):
    return db.session.execute(
        stmt.where(Project.project_name == reference).order_by(Project.created_at.asc()).limit(1)
    ).scalar_one_or_none()


def resolve_project(reference, identity=None) -> Project:
    """Resolve a project by id, falling back to exact name match.

    Names are not unique across institutions; with an ``identity`` a
    project visible to the caller wins, and a name only they cannot see still
    resolves (so the caller gets a 403 rather than a 404).
    """
    if reference is None or str(reference).strip() == "":
        raise ValidationError("project reference is required", details={"project_id": "missing"})
    reference = str(reference).strip()

    if is_canonical_id(reference):
        project = db.session.get(Project, reference)
        if project is not None:
            return project

    project = None
    if identity is not None:
        project = _oldest_by_name(visible_projects_query(identity), reference)
    if project is None:
        project = _oldest_by_name(select(Project), reference)
    if project is None:
        raise NotFoundError("Project", reference)
    return project


def list_progress_for_project(project_id) -> list[ProgressRecord]:
    return db.session.execute(
        select(ProgressRecord)
        .where(ProgressRecord.project_id == str(project_id))
        .order_by(ProgressRecord.created_at.asc(), ProgressRecord.id.asc())
    ).scalars().all()


def resolve_progress_or_list_by_project(reference) -> ProgressResolution:
    """Resolve a progress reference that may be a record id or a project id."""
    reference = str(reference).strip()
    if is_canonical_id(reference):
        record = db.session.get(ProgressRecord, reference)
        if record is not None:
            return ProgressResolution(kind=KIND_RECORD, record=record)
    return ProgressResolution(kind=KIND_LIST, records=list_progress_for_project(reference))


def get_progress_or_404(progress_id) -> ProgressRecord:
    record = db.session.get(ProgressRecord, str(progress_id)) if is_canonical_id(str(progress_id)) else None
    if record is None:
        raise NotFoundError("ProgressRecord", progress_id)
    return record


def get_project_or_404(project_id) -> Project:
    project = db.session.get(Project, str(project_id)) if is_canonical_id(str(project_id)) else None
    if project is None:
        raise NotFoundError("Project", project_id)
    return project
