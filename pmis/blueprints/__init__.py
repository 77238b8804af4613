"""
PMIS — Project Monitoring Information System
Blueprint registry and shared request helpers.
"""

import logging

from flask import request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from pmis.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from pmis.services.upload_service import UploadTooLargeError
from pmis.utils.errors import E, api_error

logger = logging.getLogger(__name__)

_HTTP_CODES = {
    400: E.VALIDATION_INVALID,
    401: E.UNAUTHORIZED,
    403: E.FORBIDDEN,
    404: E.NOT_FOUND,
    409: E.CONFLICT_STATE,
    413: E.PAYLOAD_TOO_LARGE,
}


def request_payload() -> dict:
    """Body of a JSON or form/multipart request as a plain dict.

    Repeated form keys (``contractors=a&contractors=b``) become lists.
    """
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data
    return {k: v[0] if len(v) == 1 else v for k, v in request.form.lists()}


def arg_flag(name: str, default: bool = True) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def register_error_handlers(bp) -> None:
    """Map the domain exceptions to JSON error responses for ``bp``."""

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(UploadTooLargeError)
    def _handle_too_large(error: UploadTooLargeError):
        return api_error(E.PAYLOAD_TOO_LARGE, str(error), details=error.details)

    @bp.errorhandler(UnauthorizedError)
    def _handle_unauthorized(error: UnauthorizedError):
        return api_error(E.UNAUTHORIZED, str(error))

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        details = {"fields": error.fields} if error.fields else None
        return api_error(E.FORBIDDEN, str(error), details=details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        code = E.CONFLICT_DUPLICATE if error.field in ("username", "email", "constraint") else E.CONFLICT_STATE
        return api_error(code, str(error), details={"field": error.field})

    @bp.errorhandler(SQLAlchemyError)
    def _handle_db(error: SQLAlchemyError):
        logger.exception("Database error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            fallback = E.INTERNAL if (error.code or 500) >= 500 else E.VALIDATION_INVALID
            code = _HTTP_CODES.get(error.code, fallback)
            return api_error(code, error.description or error.name, status=error.code)
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
