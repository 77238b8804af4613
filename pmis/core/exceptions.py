"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
get consistent HTTP status codes everywhere (see ``pmis.blueprints``).

Usage:
    from pmis.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise ValidationError("project_id is required", details={"project_id": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a referenced Project, ProgressRecord or User does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project").
        resource_id: The id or reference that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id!r}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed, missing, or violates a schema constraint.

    Maps to HTTP 400 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names;
                 values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised on a uniqueness clash or a write against a stale/locked state.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field in conflict (e.g. "email", "version", "status").
        value: The conflicting value.
        message: Optional override for the default duplicate-value message.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = message or f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ForbiddenError(Exception):
    """Raised when an authenticated identity may not touch a resource or field.

    Maps to HTTP 403.

    Args:
        message: Human-readable reason.
        fields: For field-level denials, the field names that were refused.
    """

    def __init__(self, message: str = "Forbidden", fields: list[str] | None = None) -> None:
        self.fields = sorted(fields) if fields else []
        super().__init__(message)


class UnauthorizedError(Exception):
    """Raised when the bearer credential is missing, expired or invalid.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)
