"""
Application-wide exception hierarchy.

Services and stores raise these types; ``create_app`` registers one
error handler per type so every blueprint gets the same HTTP mapping
without local try/except blocks.

Usage:
    from app.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="Achievement", resource_id=ref_id)
    raise InvalidStateError("submit", current="verified")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is soft-deleted.

    Args:
        resource: Human-readable entity name (e.g. "Achievement", "Student").
        resource_id: The identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidStateError(Exception):
    """Raised when an operation is not permitted from the current status.

    Also raised when a conditional status update matched zero rows, i.e. a
    concurrent request moved the record first.
    """

    def __init__(self, action: str, current: str | None = None, reason: str | None = None) -> None:
        self.action = action
        self.current_status = current
        self.reason = reason
        msg = f"Cannot '{action}'"
        if current is not None:
            msg += f" from status '{current}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AccessDeniedError(Exception):
    """Raised when the principal is not allowed to act on the target."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class NotAStudentError(AccessDeniedError):
    """Raised when a student-only operation is attempted by a user with no student profile."""

    def __init__(self, user_id: int | None = None) -> None:
        self.user_id = user_id
        super().__init__("Only students can perform this action")


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AuthenticationError(Exception):
    """Raised when credentials or a bearer token cannot be verified."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class DependencyError(Exception):
    """Raised when a backing store is unreachable or rejects a write.

    Args:
        store: Which collaborator failed ("reference_store", "content_store", ...).
        operation: The operation that was attempted.
    """

    def __init__(self, store: str, operation: str, cause: Exception | None = None) -> None:
        self.store = store
        self.operation = operation
        self.cause = cause
        msg = f"{store} failed during {operation}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
