"""
Ownership / visibility tests — who can list, read and modify projects.
"""

import pytest

from pmis.core.exceptions import ForbiddenError
from pmis.core.identity import Identity
from pmis.models import db
from pmis.models.auth import ROLE_FINANCIAL, ROLE_PHYSICAL
from pmis.models.progress import STATUS_SUBMITTED, ProgressRecord
from pmis.services import visibility


@pytest.fixture()
def projects(physical, outsider, project_factory):
    own = project_factory(physical, name="Own")
    foreign = project_factory(outsider, name="Foreign", institution="INST-B")
    # created by an outsider, but for INST-A
    shared = project_factory(outsider, name="Shared", institution="INST-A")
    return {"own": own, "foreign": foreign, "shared": shared}


class TestProjectVisibility:
    def test_admin_sees_everything(self, admin, projects):
        names = {p.project_name for p in visibility.list_visible_projects(Identity.from_user(admin))}
        assert names == {"Own", "Foreign", "Shared"}

    def test_institution_and_creator_scoping(self, physical, projects):
        names = {p.project_name for p in visibility.list_visible_projects(Identity.from_user(physical))}
        assert names == {"Own", "Shared"}

    def test_creator_sees_own_project_in_other_institution(self, outsider, projects):
        names = {p.project_name for p in visibility.list_visible_projects(Identity.from_user(outsider))}
        assert names == {"Foreign", "Shared"}

    def test_user_without_institution_sees_only_own(self, user_factory, project_factory, projects):
        loner = user_factory("loner", ROLE_PHYSICAL, institution_id=None)
        project_factory(loner, name="Loner's", institution=None)
        names = {p.project_name for p in visibility.list_visible_projects(Identity.from_user(loner))}
        assert names == {"Loner's"}

    def test_newest_first(self, physical, projects):
        listed = visibility.list_visible_projects(Identity.from_user(physical))
        assert [p.project_name for p in listed] == ["Shared", "Own"]


class TestMutation:
    def test_peer_can_view_but_not_mutate(self, financial, projects):
        identity = Identity.from_user(financial)
        shared = projects["shared"]
        assert visibility.can_view_project(identity, shared)
        assert not visibility.can_mutate_project(identity, shared)
        with pytest.raises(ForbiddenError):
            visibility.ensure_can_mutate(identity, shared)

    def test_creator_and_admin_mutate(self, physical, admin, projects):
        assert visibility.can_mutate_project(Identity.from_user(physical), projects["own"])
        assert visibility.can_mutate_project(Identity.from_user(admin), projects["foreign"])

    def test_outside_institution_cannot_view(self, physical, projects):
        with pytest.raises(ForbiddenError):
            visibility.ensure_can_view(Identity.from_user(physical), projects["foreign"])

    def test_orphaned_project_not_mutable_by_anonymous_creator(self, projects):
        projects["own"].created_by = None
        ghost = Identity(user_id=None, role=ROLE_FINANCIAL, institution_id="INST-Z")
        assert not visibility.can_mutate_project(ghost, projects["own"])


class TestProgressVisibility:
    def test_progress_follows_project(self, physical, projects):
        for key in ("own", "foreign", "shared"):
            db.session.add(ProgressRecord(project_id=projects[key].id, progress_name=key))
        db.session.commit()
        names = {r.progress_name for r in visibility.list_visible_progress(Identity.from_user(physical))}
        assert names == {"own", "shared"}

    def test_status_and_project_filters(self, physical, projects):
        db.session.add(ProgressRecord(project_id=projects["own"].id, progress_name="a"))
        db.session.add(ProgressRecord(project_id=projects["own"].id, progress_name="b", status=STATUS_SUBMITTED))
        db.session.add(ProgressRecord(project_id=projects["shared"].id, progress_name="c"))
        db.session.commit()
        identity = Identity.from_user(physical)
        submitted = visibility.list_visible_progress(identity, status=STATUS_SUBMITTED)
        assert [r.progress_name for r in submitted] == ["b"]
        by_project = visibility.list_visible_progress(identity, project_id=projects["shared"].id)
        assert [r.progress_name for r in by_project] == ["c"]
