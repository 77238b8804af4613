"""
Progress Lifecycle tests — draft → submitted state machine and role gates.
"""

import pytest

from pmis.core.exceptions import ConflictError, ForbiddenError, ValidationError
from pmis.core.identity import Identity
from pmis.models.auth import ROLE_ADMIN, ROLE_FINANCIAL, ROLE_PHYSICAL, ROLE_REGISTRAR
from pmis.models.progress import STATUS_DRAFT, STATUS_SUBMITTED, ProgressRecord
from pmis.services import progress_lifecycle as lc


def _identity(role):
    return Identity(user_id=f"user-{role}", role=role, institution_id="INST-A")


def _record(status=STATUS_DRAFT):
    return ProgressRecord(id="rec-1", project_id="proj-1", status=status, version=1)


class TestTransitions:
    @pytest.mark.parametrize("old,new,expected", [
        (STATUS_DRAFT, STATUS_DRAFT, True),
        (STATUS_DRAFT, STATUS_SUBMITTED, True),
        (STATUS_SUBMITTED, STATUS_DRAFT, False),
        (STATUS_SUBMITTED, STATUS_SUBMITTED, False),
        (STATUS_DRAFT, "archived", False),
    ])
    def test_transition_table(self, old, new, expected):
        assert lc.validate_progress_transition(old, new) is expected

    def test_reopen_only_with_flag(self):
        assert lc.validate_progress_transition(STATUS_SUBMITTED, STATUS_DRAFT, allow_reopen=True) is True


class TestCreateAndSave:
    def test_only_physical_staff_creates(self):
        lc.ensure_can_create(_identity(ROLE_PHYSICAL))
        for role in (ROLE_FINANCIAL, ROLE_REGISTRAR, ROLE_ADMIN):
            with pytest.raises(ForbiddenError):
                lc.ensure_can_create(_identity(role))

    def test_staff_can_save_drafts(self):
        lc.ensure_can_save(_identity(ROLE_PHYSICAL), _record())
        lc.ensure_can_save(_identity(ROLE_FINANCIAL), _record())

    @pytest.mark.parametrize("role", [ROLE_REGISTRAR, ROLE_ADMIN])
    def test_registrar_and_admin_cannot_save(self, role):
        with pytest.raises(ForbiddenError):
            lc.ensure_can_save(_identity(role), _record())

    def test_submitted_record_is_locked(self):
        with pytest.raises(ConflictError):
            lc.ensure_can_save(_identity(ROLE_PHYSICAL), _record(STATUS_SUBMITTED))

    def test_submitted_record_editable_when_unlocked(self):
        lc.ensure_can_save(_identity(ROLE_PHYSICAL), _record(STATUS_SUBMITTED), lock_submitted=False)


class TestRequestedStatus:
    def test_absent_or_same_status_passes(self):
        lc.check_requested_status(_record(), None)
        lc.check_requested_status(_record(), "")
        lc.check_requested_status(_record(), STATUS_DRAFT)
        lc.check_requested_status(None, STATUS_DRAFT)

    def test_unknown_status_is_invalid(self):
        with pytest.raises(ValidationError):
            lc.check_requested_status(_record(), "approved")

    def test_submitting_by_save_is_refused(self):
        with pytest.raises(ConflictError):
            lc.check_requested_status(_record(), STATUS_SUBMITTED)

    def test_reverting_by_save_is_refused(self):
        with pytest.raises(ConflictError):
            lc.check_requested_status(_record(STATUS_SUBMITTED), STATUS_DRAFT)


class TestSubmit:
    @pytest.mark.parametrize("role", [ROLE_REGISTRAR, ROLE_ADMIN])
    def test_registrar_or_admin_submits(self, role):
        record = _record()
        identity = _identity(role)
        lc.submit(record, identity)
        assert record.status == STATUS_SUBMITTED
        assert record.submitted_by == identity.user_id
        assert record.submitted_at is not None

    @pytest.mark.parametrize("role", [ROLE_PHYSICAL, ROLE_FINANCIAL])
    def test_staff_cannot_submit(self, role):
        record = _record()
        with pytest.raises(ForbiddenError):
            lc.submit(record, _identity(role))
        assert record.status == STATUS_DRAFT

    def test_double_submit_conflicts(self):
        record = _record()
        lc.submit(record, _identity(ROLE_REGISTRAR))
        with pytest.raises(ConflictError):
            lc.submit(record, _identity(ROLE_REGISTRAR))


class TestReopen:
    def test_disabled_by_default(self):
        record = _record(STATUS_SUBMITTED)
        with pytest.raises(ConflictError):
            lc.reopen(record, _identity(ROLE_ADMIN))
        assert record.status == STATUS_SUBMITTED

    def test_admin_reopens_when_enabled(self):
        record = _record()
        lc.submit(record, _identity(ROLE_REGISTRAR))
        lc.reopen(record, _identity(ROLE_ADMIN), allow_reopen=True)
        assert record.status == STATUS_DRAFT
        assert record.submitted_at is None
        assert record.submitted_by is None

    def test_registrar_cannot_reopen(self):
        with pytest.raises(ForbiddenError):
            lc.reopen(_record(STATUS_SUBMITTED), _identity(ROLE_REGISTRAR), allow_reopen=True)

    def test_reopen_of_draft_conflicts(self):
        with pytest.raises(ConflictError):
            lc.reopen(_record(), _identity(ROLE_ADMIN), allow_reopen=True)
