"""Error taxonomy shared by every service.

Each error carries a stable machine-readable `code` and the HTTP status the
API layer renders it with. Services raise these; endpoints never build
error responses for them by hand.
"""

from typing import Any


class ServiceError(Exception):
    """Base exception for service errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when required input is missing or malformed."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, field: str, value: Any, message: str) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class NotFoundError(ServiceError):
    """Raised when an entity id is unknown."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class PreconditionFailedError(ServiceError):
    """Raised when a lifecycle step is attempted out of order."""

    code = "PRECONDITION_FAILED"
    status_code = 400


class ConflictError(ServiceError):
    """Raised on a duplicate or already-applied action."""

    code = "CONFLICT"
    status_code = 400


class GenerationError(ServiceError):
    """Raised when an external generation call fails or times out."""

    code = "GENERATION_ERROR"
    status_code = 500

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(message)


class StorageError(ServiceError):
    """Raised when an asset cannot be written to object storage."""

    code = "STORAGE_ERROR"
    status_code = 500
