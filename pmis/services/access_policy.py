"""
Access Control Policy — which role may write which progress-record field.

Pure functions, no database access. The same rules drive both the form
field-access map handed to the SPA and the server-side enforcement in
``progress_service`` (the server never trusts what the client locked).

Role → writable fields:
    physicalStaff   project selector + basic + physical fields
    financialStaff  financial fields, and only while viewing native currency
    registrar       nothing (views, and triggers submission)
    admin           nothing on progress content (manages projects and users)

Every grant additionally requires the caller's "editing" flag; the derived
cumulative percentage is never writable by anyone.
"""

from __future__ import annotations

import logging

from pmis.models.auth import ROLE_ADMIN, ROLE_FINANCIAL, ROLE_PHYSICAL, ROLE_REGISTRAR, ROLES
from pmis.models.progress import (
    BASIC_FIELDS,
    CONTENT_FIELDS,
    DERIVED_FIELDS,
    FINANCIAL_FIELDS,
    PHYSICAL_FIELDS,
)

logger = logging.getLogger(__name__)

NATIVE_CURRENCY = "LKR"

EDITABLE = "editable"
READ_ONLY = "read-only"
HIDDEN = "hidden"

PROJECT_SELECTOR_FIELD = "project_id"

ROLE_WRITABLE_FIELDS: dict[str, frozenset[str]] = {
    ROLE_PHYSICAL: frozenset({PROJECT_SELECTOR_FIELD}) | BASIC_FIELDS | PHYSICAL_FIELDS,
    ROLE_FINANCIAL: FINANCIAL_FIELDS,
    ROLE_REGISTRAR: frozenset(),
    ROLE_ADMIN: frozenset(),
}

# Everything a progress form can show
VISIBLE_FIELDS = frozenset({PROJECT_SELECTOR_FIELD}) | CONTENT_FIELDS | DERIVED_FIELDS | frozenset({"status"})


def _is_native(currency: str | None) -> bool:
    return (currency or NATIVE_CURRENCY).strip().upper() == NATIVE_CURRENCY


def can_edit_field(role: str, field_name: str, editing: bool = True, currency: str | None = NATIVE_CURRENCY) -> bool:
    """Return True if ``role`` may change ``field_name`` right now.

    Args:
        role: The caller's workflow role.
        field_name: Progress-record field (snake_case).
        editing: The caller's edit-mode flag; False freezes every field.
        currency: Display currency currently selected; financial fields
                  are only writable in the native currency so a converted
                  figure is never written back.
    """
    if not editing or field_name in DERIVED_FIELDS:
        return False
    if role == ROLE_FINANCIAL and not _is_native(currency):
        return False
    return field_name in ROLE_WRITABLE_FIELDS.get(role, frozenset())


def field_visibility(role: str, field_name: str, editing: bool = True, currency: str | None = NATIVE_CURRENCY) -> str:
    """Classify a field as editable, read-only or hidden for the caller."""
    if role not in ROLES or field_name not in VISIBLE_FIELDS:
        return HIDDEN
    if can_edit_field(role, field_name, editing, currency):
        return EDITABLE
    return READ_ONLY


def editable_fields(role: str, editing: bool = True, currency: str | None = NATIVE_CURRENCY) -> frozenset[str]:
    """All fields ``role`` may currently change."""
    return frozenset(f for f in ROLE_WRITABLE_FIELDS.get(role, ()) if can_edit_field(role, f, editing, currency))


def field_access_map(role: str, editing: bool = True, currency: str | None = NATIVE_CURRENCY) -> dict[str, str]:
    """``{field: editable|read-only|hidden}`` for every visible field."""
    return {f: field_visibility(role, f, editing, currency) for f in sorted(VISIBLE_FIELDS)}


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _unchanged(stored, incoming) -> bool:
    if _is_blank(stored) and _is_blank(incoming):
        return True
    return stored == incoming


def split_payload(role: str, payload: dict, current=None, currency: str | None = NATIVE_CURRENCY) -> tuple[dict, list[str]]:
    """Separate the mutations ``role`` may apply from the ones it may not.

    A field only counts as a mutation when its incoming value differs from
    the stored one (``current``), or, on create, when it is non-blank. That
    lets the SPA send back whole forms containing other roles' untouched
    fields. Keys that are not progress content (``id``, ``status``,
    ``version`` and unknown names) and the derived field are ignored here.

    Args:
        role: The caller's workflow role.
        payload: Incoming values, already coerced to column types.
        current: The stored ProgressRecord, or None on create.
        currency: The caller's display currency.

    Returns:
        (allowed, denied) — dict of permitted changes, sorted list of
        refused field names.
    """
    allowed: dict = {}
    denied: list[str] = []
    for name, value in payload.items():
        if name in DERIVED_FIELDS:
            continue
        if name != PROJECT_SELECTOR_FIELD and name not in CONTENT_FIELDS:
            continue
        if can_edit_field(role, name, True, currency):
            allowed[name] = value
            continue
        stored = getattr(current, name, None) if current is not None else None
        if _unchanged(stored, value):
            continue
        denied.append(name)

    if denied:
        logger.debug("Field policy refused %s for role=%s", denied, role)
    return allowed, sorted(denied)
