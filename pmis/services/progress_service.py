"""
Progress Service — the role-scoped workflow around ProgressRecord.

Every write goes through the same pipeline:

    visibility (may the caller see the project?)
      → lifecycle (may this role save / submit in this state?)
      → coerce payload to column types
      → access_policy.split_payload (which fields may this role change?)
      → range checks, file uploads
      → progress_calculator.recompute_derived
      → commit (version + 1)

Saves return ``(record, warnings)``; warnings are the quarterly target
checks and never block a save.

Policy switches (app config):
    FIELD_POLICY_MODE         "reject" → ForbiddenError, "drop" → log and ignore
    PROGRESS_LOCK_SUBMITTED   refuse edits to submitted records
    PROGRESS_ALLOW_REOPEN     let an admin move submitted → draft
"""

import json
import logging

from flask import current_app

from pmis.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from pmis.models import db
from pmis.models.progress import (
    CONTENT_FIELDS,
    LIST_TEXT_FIELDS,
    MONTHS,
    PERCENTAGE_FIELDS,
    PROGRESS_IMAGE_FIELDS,
    PROGRESS_STATUSES,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    ProgressRecord,
)
from pmis.services import access_policy, progress_lifecycle, upload_service, visibility
from pmis.services.progress_calculator import (
    financial_display,
    normalize_currency,
    quarterly_warnings,
    recompute_derived,
)
from pmis.services.record_resolution import (
    get_progress_or_404,
    resolve_progress_or_list_by_project,
    resolve_project,
)
from pmis.utils.helpers import coerce_fields, commit_or_raise

logger = logging.getLogger(__name__)

POLICY_REJECT = "reject"
POLICY_DROP = "drop"


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════
def _policy_mode() -> str:
    return current_app.config.get("FIELD_POLICY_MODE", POLICY_REJECT)


def _lock_submitted() -> bool:
    return current_app.config.get("PROGRESS_LOCK_SUBMITTED", True)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _has_file(files, name) -> bool:
    file = files.get(name) if files else None
    return file is not None and bool(file.filename)


def _as_name_list(value) -> list[str]:
    """contractors / consultants: one list, however the client sent it.

    A repeated form key arrives as a list, a single one as a plain string,
    and a resubmitted form carries back the stored JSON text.
    """
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    text = str(value).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v) for v in parsed]
    return [text]


def _resolve_project_ref(reference, identity=None):
    """Project for a payload ``project_id`` (id or exact name); 400 if unresolvable."""
    if _is_blank(reference):
        raise ValidationError("project_id is required", details={"project_id": "required"})
    try:
        return resolve_project(reference, identity)
    except NotFoundError:
        raise ValidationError(
            f"Project '{reference}' not found", details={"project_id": "unresolved"},
        )


def _check_ranges(values: dict) -> None:
    for name in PERCENTAGE_FIELDS:
        value = values.get(name)
        if value is not None and not 0 <= value <= 100:
            raise ValidationError(
                f"{name} must be between 0 and 100", details={name: "out of range"},
            )
    month = values.get("target_month")
    if month is not None and month not in MONTHS:
        raise ValidationError(
            f"Invalid target_month '{month}'", details={"target_month": "full month name"},
        )


def _check_version(record, requested) -> None:
    if _is_blank(requested):
        return
    try:
        requested = int(requested)
    except (TypeError, ValueError):
        raise ValidationError("version must be an integer", details={"version": "expected integer"})
    if requested != record.version:
        raise ConflictError(
            "ProgressRecord", "version", requested,
            message=f"Progress record was modified (version {record.version}); reload and retry",
        )


def _apply_changes(record, identity, data: dict, files, is_new: bool) -> list[str]:
    """Run the field policy over ``data`` and write what is allowed onto ``record``."""
    currency = normalize_currency(data.get("currency"))
    data = {
        **data,
        **{name: _as_name_list(data[name]) for name in LIST_TEXT_FIELDS if not _is_blank(data.get(name))},
    }
    values = coerce_fields(ProgressRecord, data, CONTENT_FIELDS)

    if not is_new and not _is_blank(data.get("project_id")):
        values["project_id"] = _resolve_project_ref(data["project_id"], identity).id

    allowed, denied = access_policy.split_payload(
        identity.role, values, None if is_new else record, currency,
    )

    upload_fields = []
    for name in PROGRESS_IMAGE_FIELDS:
        if not _has_file(files, name):
            continue
        if access_policy.can_edit_field(identity.role, name, True, currency):
            upload_fields.append(name)
        else:
            denied.append(name)

    if denied:
        denied = sorted(set(denied))
        if _policy_mode() == POLICY_REJECT:
            logger.warning(
                "Field policy rejected %s for %s", denied, identity.role,
                extra={"progress_id": record.id, "user_id": identity.user_id, "fields": denied},
            )
            raise ForbiddenError(
                f"Role '{identity.role}' may not edit: {', '.join(denied)}", fields=denied,
            )
        logger.warning(
            "Field policy dropped %s for %s", denied, identity.role,
            extra={"progress_id": record.id, "user_id": identity.user_id, "fields": denied},
        )

    _check_ranges(allowed)

    if "project_id" in allowed and allowed["project_id"] != record.project_id:
        target = resolve_project(allowed["project_id"])
        visibility.ensure_can_view(identity, target)

    allowed.update(upload_service.save_uploads(files, upload_fields))

    for name, value in allowed.items():
        setattr(record, name, value)
    recompute_derived(record)
    return quarterly_warnings(record)


# ═══════════════════════════════════════════════════════════════
# Create / save
# ═══════════════════════════════════════════════════════════════
def create_progress(identity, data: dict, files=None):
    """(none) → draft. Returns (record, warnings)."""
    progress_lifecycle.ensure_can_create(identity)
    project = _resolve_project_ref(data.get("project_id"), identity)
    visibility.ensure_can_view(identity, project)
    progress_lifecycle.check_requested_status(None, data.get("status"))

    record = ProgressRecord(project_id=project.id, status=STATUS_DRAFT, version=1)
    warnings = _apply_changes(record, identity, data, files, is_new=True)

    db.session.add(record)
    commit_or_raise("ProgressRecord")
    logger.info(
        "Progress record created",
        extra={"progress_id": record.id, "project_id": project.id, "user_id": identity.user_id},
    )
    return record, warnings


def save_draft(identity, progress_id, data: dict, files=None):
    """draft → draft. Returns (record, warnings)."""
    record = get_progress_or_404(progress_id)
    visibility.ensure_can_view(identity, record.project)
    progress_lifecycle.ensure_can_save(identity, record, lock_submitted=_lock_submitted())
    progress_lifecycle.check_requested_status(record, data.get("status"))
    _check_version(record, data.get("version"))

    warnings = _apply_changes(record, identity, data, files, is_new=False)
    record.version = (record.version or 1) + 1

    commit_or_raise("ProgressRecord")
    logger.info(
        "Progress draft saved",
        extra={"progress_id": record.id, "project_id": record.project_id, "user_id": identity.user_id},
    )
    return record, warnings


def upsert_draft(identity, data: dict, files=None):
    """Save-draft entry point: update when ``id`` is given, else create."""
    if not _is_blank(data.get("id")):
        return save_draft(identity, data["id"], data, files)
    return create_progress(identity, data, files)


# ═══════════════════════════════════════════════════════════════
# Lifecycle transitions
# ═══════════════════════════════════════════════════════════════
def submit_progress(identity, progress_id) -> ProgressRecord:
    record = get_progress_or_404(progress_id)
    visibility.ensure_can_view(identity, record.project)
    progress_lifecycle.submit(record, identity)
    commit_or_raise("ProgressRecord")
    return record


def reopen_progress(identity, progress_id) -> ProgressRecord:
    record = get_progress_or_404(progress_id)
    visibility.ensure_can_view(identity, record.project)
    progress_lifecycle.reopen(
        record, identity, allow_reopen=current_app.config.get("PROGRESS_ALLOW_REOPEN", False),
    )
    record.version = (record.version or 1) + 1
    commit_or_raise("ProgressRecord")
    return record


# ═══════════════════════════════════════════════════════════════
# Read / delete
# ═══════════════════════════════════════════════════════════════
def list_progress(identity, status=None, project_id=None) -> list[ProgressRecord]:
    if status and status not in PROGRESS_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'", details={"status": f"one of {', '.join(PROGRESS_STATUSES)}"},
        )
    return visibility.list_visible_progress(identity, status=status, project_id=project_id)


def get_progress(identity, reference):
    """Dual lookup: a progress id, or a project id listing its records.

    Returns a ProgressResolution; records of projects the caller cannot see
    are refused.
    """
    resolution = resolve_progress_or_list_by_project(reference)
    if resolution.is_record:
        visibility.ensure_can_view(identity, resolution.record.project)
    elif resolution.records:
        visibility.ensure_can_view(identity, resolution.records[0].project)
    return resolution


def get_visible_progress(identity, progress_id) -> ProgressRecord:
    record = get_progress_or_404(progress_id)
    visibility.ensure_can_view(identity, record.project)
    return record


def delete_progress(identity, progress_id) -> None:
    """Admin or the owning project's creator only."""
    record = get_progress_or_404(progress_id)
    visibility.ensure_can_mutate(identity, record.project)
    db.session.delete(record)
    commit_or_raise("ProgressRecord")
    logger.info(
        "Progress record deleted",
        extra={"progress_id": progress_id, "project_id": record.project_id, "user_id": identity.user_id},
    )


def field_access(identity, progress_id, editing=True, currency=None) -> dict:
    """Field access map for the caller's form on one record.

    A record the caller cannot save (submitted and locked, or a role
    outside the save roles) renders fully read-only.
    """
    record = get_visible_progress(identity, progress_id)
    code = normalize_currency(currency)
    writable_state = record.status == STATUS_DRAFT or not _lock_submitted()
    effective = bool(editing) and writable_state and identity.role in progress_lifecycle.SAVE_ROLES
    return {
        "progress_id": record.id,
        "role": identity.role,
        "status": record.status,
        "editing": effective,
        "currency": code,
        "fields": access_policy.field_access_map(identity.role, effective, code),
        "can_submit": (
            identity.role in progress_lifecycle.SUBMIT_ROLES and record.status != STATUS_SUBMITTED
        ),
    }


def financial_view(identity, progress_id, currency=None) -> dict:
    record = get_visible_progress(identity, progress_id)
    return financial_display(record, currency)
