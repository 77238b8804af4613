"""Shared utility functions for services and blueprints.

parse_date:        lenient date parsing (returns None on bad input)
is_canonical_id:   "does this reference look like one of our ids?"
coerce_fields:     payload → column-typed values, driven by the model's columns
commit_or_raise:   commit the session, normalizing database errors
"""
import json
import logging
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Numeric, String, Text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from pmis.core.exceptions import ConflictError, ValidationError
from pmis.models import db

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS[.fff][Z] (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def is_canonical_id(reference) -> bool:
    """True if ``reference`` has the shape of a system-generated id (UUID)."""
    if not isinstance(reference, str) or len(reference) != 36:
        return False
    try:
        uuid.UUID(reference)
    except ValueError:
        return False
    return True


def _coerce_one(name, column_type, value):
    if isinstance(column_type, Boolean):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValidationError(f"{name} must be a boolean", details={name: "expected boolean"})

    if isinstance(column_type, (Date, DateTime)):
        parsed = parse_date(value)
        if parsed is None:
            raise ValidationError(
                f"{name} must be a date (YYYY-MM-DD)", details={name: "invalid date"},
            )
        return parsed

    if isinstance(column_type, Integer):
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer", details={name: "expected integer"})
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer", details={name: "expected integer"})
        if not number.is_integer():
            raise ValidationError(f"{name} must be an integer", details={name: "expected integer"})
        return int(number)

    if isinstance(column_type, (Float, Numeric)):
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be a number", details={name: "expected number"})
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a number", details={name: "expected number"})

    if isinstance(column_type, (String, Text)):
        if isinstance(value, (list, tuple)):
            return json.dumps([str(v) for v in value], ensure_ascii=False)
        text = str(value)
        length = getattr(column_type, "length", None)
        if length and len(text) > length:
            raise ValidationError(
                f"{name} exceeds {length} characters", details={name: "too long"},
            )
        return text

    return value


def coerce_fields(model, data: dict, fields) -> dict:
    """Convert raw payload values to the Python types of ``model``'s columns.

    Only keys listed in ``fields`` are considered. Empty strings and None
    become None ("not provided"), which mirrors how HTML forms submit blanks.

    Raises:
        ValidationError: naming the first field that cannot be converted.
    """
    columns = model.__table__.columns
    out = {}
    for name in fields:
        if name not in data:
            continue
        value = data[name]
        if value is None or (isinstance(value, str) and value.strip() == ""):
            out[name] = None
            continue
        out[name] = _coerce_one(name, columns[name].type, value)
    return out


def commit_or_raise(resource: str):
    """Commit the current session; map database failures to domain errors.

    IntegrityError   → ConflictError (duplicate / constraint violation)
    StaleDataError   → ConflictError on "version" (row changed since it was loaded)
    other DB errors  → re-raised after rollback (HTTP 500 upstream)
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit (%s): %s", resource, exc.orig)
        raise ConflictError(
            resource, "constraint", message=f"{resource} violates a uniqueness or reference constraint",
        ) from exc
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Stale write on commit (%s): %s", resource, exc)
        raise ConflictError(
            resource, "version", message=f"{resource} was modified by another request; reload and retry",
        ) from exc
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit (%s)", resource)
        raise
