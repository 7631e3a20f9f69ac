"""
Service-layer exception hierarchy.

Services raise these types; ``permitflow.utils.errors.register_error_handlers``
maps each one to an HTTP status and a ``{"message", "code"}`` body once,
so blueprints never translate exceptions by hand.

Usage:
    from permitflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Item", resource_id=42)
    raise ValidationError("contractor_id is required", details={"contractor_id": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Item", "Request").
        resource_id: The key that was looked up.
        message: Optional override for the user-facing message.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if message is None:
            message = f"{resource} not found"
        super().__init__(message)


class ValidationError(Exception):
    """Raised when a payload is malformed or violates a creation rule.

    Covers missing fields and invalid item types. Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with existing data.

    Maps to HTTP 409.
    """

    def __init__(self, message: str, resource: str | None = None) -> None:
        self.resource = resource
        super().__init__(message)


class TransitionError(Exception):
    """Raised when a lifecycle action is not legal from the current status.

    Maps to HTTP 409.
    """

    def __init__(self, item_id: int, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' item {item_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.item_id = item_id
        self.action = action
        self.current_status = current
        self.reason = reason


class PermissionDenied(Exception):
    """Raised when the caller's role may not perform an operation.

    Maps to HTTP 403.
    """

    def __init__(self, role: str | None, operation: str, reason: str | None = None):
        if reason:
            msg = reason
        else:
            msg = f"Role '{role}' is not permitted to perform '{operation}'"
        super().__init__(msg)
        self.role = role
        self.operation = operation


class AuthenticationError(Exception):
    """Raised when credentials or a bearer token cannot be verified.

    Maps to HTTP 401 by default; a request without any token gets 403.
    """

    def __init__(self, message: str = "Authentication required", status_code: int = 401):
        self.status_code = status_code
        super().__init__(message)


class StorageError(Exception):
    """Raised when the database rejects a write or is unreachable.

    Maps to HTTP 500 with a generic message. Never retried.
    """

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message)
