"""
Record Resolution tests — project by id or name, progress id vs project id.
"""

import uuid

import pytest

from pmis.core.exceptions import NotFoundError, ValidationError
from pmis.core.identity import Identity
from pmis.models import db
from pmis.models.progress import ProgressRecord
from pmis.services.record_resolution import (
    KIND_LIST,
    KIND_RECORD,
    get_progress_or_404,
    get_project_or_404,
    resolve_progress_or_list_by_project,
    resolve_project,
)


def _progress(project, **fields):
    record = ProgressRecord(project_id=project.id, **fields)
    db.session.add(record)
    db.session.commit()
    return record


class TestResolveProject:
    def test_by_id(self, project):
        assert resolve_project(project.id).id == project.id

    def test_by_exact_name(self, project):
        assert resolve_project("Bridge Rehabilitation").id == project.id

    def test_name_match_is_exact(self, project):
        with pytest.raises(NotFoundError):
            resolve_project("bridge rehabilitation")

    def test_id_shaped_name_falls_back_to_name(self, physical, project_factory):
        name = str(uuid.uuid4())
        named = project_factory(physical, name=name)
        assert resolve_project(name).id == named.id

    def test_name_prefers_project_visible_to_caller(self, project, outsider, project_factory):
        theirs = project_factory(outsider, name="Bridge Rehabilitation", institution="INST-B")
        assert resolve_project("Bridge Rehabilitation").id == project.id
        assert resolve_project("Bridge Rehabilitation", Identity.from_user(outsider)).id == theirs.id

    def test_invisible_name_still_resolves(self, project, outsider):
        assert resolve_project("Bridge Rehabilitation", Identity.from_user(outsider)).id == project.id

    def test_unknown_reference(self, project):
        with pytest.raises(NotFoundError):
            resolve_project(str(uuid.uuid4()))

    def test_blank_reference(self):
        with pytest.raises(ValidationError):
            resolve_project("  ")


class TestResolveProgress:
    def test_progress_id_returns_record(self, project):
        record = _progress(project, progress_name="March")
        resolution = resolve_progress_or_list_by_project(record.id)
        assert resolution.kind == KIND_RECORD
        assert resolution.is_record
        assert resolution.record.id == record.id

    def test_project_id_returns_list_in_creation_order(self, project):
        first = _progress(project, progress_name="January")
        second = _progress(project, progress_name="February")
        resolution = resolve_progress_or_list_by_project(project.id)
        assert resolution.kind == KIND_LIST
        assert [r.id for r in resolution.records] == [first.id, second.id]

    def test_project_without_records_returns_empty_list(self, project):
        resolution = resolve_progress_or_list_by_project(project.id)
        assert resolution.kind == KIND_LIST
        assert resolution.records == []

    def test_non_id_reference_is_a_list_lookup(self):
        resolution = resolve_progress_or_list_by_project("not-an-id")
        assert resolution.kind == KIND_LIST
        assert resolution.records == []


class TestGetOr404:
    def test_progress_found(self, project):
        record = _progress(project)
        assert get_progress_or_404(record.id).id == record.id

    def test_progress_missing(self):
        with pytest.raises(NotFoundError):
            get_progress_or_404(str(uuid.uuid4()))

    def test_progress_malformed_id(self):
        with pytest.raises(NotFoundError):
            get_progress_or_404("42")

    def test_project_missing(self):
        with pytest.raises(NotFoundError):
            get_project_or_404(str(uuid.uuid4()))
