"""
Application-wide exception hierarchy.

Services raise these types; blueprints register one handler per type and
get the same HTTP status everywhere.

Usage:
    from completions.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="System", resource_id=system_id)
    raise ValidationError("project_id is required", details={"project_id": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model name (e.g. "System", "Subsystem").
        resource_id: The key that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is missing or violates a business rule.

    ``status_code`` is 400 for missing/malformed parameters and 422 for
    well-formed data that breaks a rule (invalid enum value, bad FK).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None, status_code: int = 400) -> None:
        self.details = details or {}
        self.status_code = status_code
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value. Maps to HTTP 409."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AuthError(Exception):
    """Raised for missing/invalid credentials (401) or insufficient role (403)."""

    def __init__(self, message: str, status_code: int = 401) -> None:
        self.status_code = status_code
        super().__init__(message)
