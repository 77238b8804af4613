"""
Progress Lifecycle — the draft → submitted state machine.

Transitions (PROGRESS_TRANSITIONS in pmis.models.progress):
    (none)    → draft       physicalStaff creates a record
    draft     → draft       physicalStaff / financialStaff save partial data
    draft     → submitted   registrar or admin submits
    submitted → draft       admin only, and only with PROGRESS_ALLOW_REOPEN

Functions here mutate the record in memory and raise on refusal; the
caller (progress_service) owns the commit.
"""

import logging
from datetime import datetime, timezone

from pmis.core.exceptions import ConflictError, ForbiddenError, ValidationError
from pmis.models.auth import ROLE_ADMIN, ROLE_FINANCIAL, ROLE_PHYSICAL, ROLE_REGISTRAR
from pmis.models.progress import (
    PROGRESS_STATUSES,
    PROGRESS_TRANSITIONS,
    REOPEN_TRANSITION,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
)

logger = logging.getLogger(__name__)

CREATE_ROLES = frozenset({ROLE_PHYSICAL})
SAVE_ROLES = frozenset({ROLE_PHYSICAL, ROLE_FINANCIAL})
SUBMIT_ROLES = frozenset({ROLE_REGISTRAR, ROLE_ADMIN})
REOPEN_ROLES = frozenset({ROLE_ADMIN})


def validate_progress_transition(old_status, new_status, allow_reopen=False):
    """Return True if a ProgressRecord status transition is valid."""
    if new_status in PROGRESS_TRANSITIONS.get(old_status, []):
        return True
    return allow_reopen and (old_status, new_status) == REOPEN_TRANSITION


def ensure_can_create(identity) -> None:
    if identity.role not in CREATE_ROLES:
        raise ForbiddenError(f"Role '{identity.role}' cannot create progress records")


def ensure_can_save(identity, record, lock_submitted=True) -> None:
    """Guard a draft save (draft → draft)."""
    if identity.role not in SAVE_ROLES:
        raise ForbiddenError(f"Role '{identity.role}' cannot edit progress records")
    if record.status == STATUS_SUBMITTED and lock_submitted:
        raise ConflictError(
            "ProgressRecord", "status", record.status,
            message="Progress record is submitted and can no longer be edited",
        )


def check_requested_status(record, requested) -> None:
    """Reject a save payload that tries to move status by itself.

    Saves may only carry the current status (or ``draft`` on a draft); every
    other change has to go through submit/reopen.
    """
    if requested in (None, ""):
        return
    if requested not in PROGRESS_STATUSES:
        raise ValidationError(
            f"Invalid status '{requested}'",
            details={"status": f"one of {', '.join(PROGRESS_STATUSES)}"},
        )
    current = record.status if record is not None else STATUS_DRAFT
    if requested == current:
        return
    if requested == STATUS_SUBMITTED:
        raise ConflictError(
            "ProgressRecord", "status", requested,
            message="Use the submit action to submit a progress record",
        )
    raise ConflictError(
        "ProgressRecord", "status", requested,
        message=f"Cannot change status from '{current}' to '{requested}' by saving",
    )


def submit(record, identity) -> None:
    """draft → submitted."""
    if identity.role not in SUBMIT_ROLES:
        raise ForbiddenError("Only a registrar or admin can submit progress records")
    if not validate_progress_transition(record.status, STATUS_SUBMITTED):
        raise ConflictError(
            "ProgressRecord", "status", record.status,
            message=f"Cannot submit a progress record in status '{record.status}'",
        )
    record.status = STATUS_SUBMITTED
    record.submitted_at = datetime.now(timezone.utc)
    record.submitted_by = identity.user_id
    logger.info(
        "Progress record submitted",
        extra={"progress_id": record.id, "project_id": record.project_id, "user_id": identity.user_id},
    )


def reopen(record, identity, allow_reopen=False) -> None:
    """submitted → draft, when policy allows it."""
    if not allow_reopen:
        raise ConflictError(
            "ProgressRecord", "status", record.status,
            message="Submitted progress records cannot be reopened",
        )
    if identity.role not in REOPEN_ROLES:
        raise ForbiddenError("Only an admin can reopen a submitted progress record")
    if (record.status, STATUS_DRAFT) != REOPEN_TRANSITION:
        raise ConflictError(
            "ProgressRecord", "status", record.status,
            message=f"Cannot reopen a progress record in status '{record.status}'",
        )
    record.status = STATUS_DRAFT
    record.submitted_at = None
    record.submitted_by = None
    logger.info(
        "Progress record reopened",
        extra={"progress_id": record.id, "project_id": record.project_id, "user_id": identity.user_id},
    )
