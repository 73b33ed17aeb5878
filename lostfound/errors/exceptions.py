"""Exception hierarchy for the lifecycle core.

Every fault that crosses a component boundary is an ``AdminError`` carrying
an ``ErrorKind``. Callers branch on ``kind``; user-facing text comes from
the message catalog, never from ``message``.
"""

from typing import Any

from lostfound.errors.kinds import ErrorKind, is_retryable


DetailValue = str | int | float | bool | None


class AdminError(Exception):
    """Base exception for all classified errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Internal, human-readable error message.
            cause: Original exception, if this wraps one.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details or {}

    @property
    def is_retryable(self) -> bool:
        """Whether the operation that raised this may be retried."""
        return is_retryable(self.kind)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.is_retryable,
            "cause": type(self.cause).__name__ if self.cause else None,
            "details": self.details,
        }


class NetworkError(AdminError):
    """Connectivity failure or timeout."""

    kind = ErrorKind.NETWORK


class StoreError(AdminError):
    """Document store failure (transaction, query or commit)."""

    kind = ErrorKind.STORE


class StorageError(AdminError):
    """Filesystem or blob storage failure."""

    kind = ErrorKind.STORAGE


class NotificationError(AdminError):
    """Notification could not be delivered."""

    kind = ErrorKind.NOTIFICATION


class AuthenticationError(AdminError):
    """Caller is not authenticated."""

    kind = ErrorKind.AUTHENTICATION


class PermissionDeniedError(AdminError):
    """Caller lacks the permission for the requested action."""

    kind = ErrorKind.PERMISSION


class ValidationError(AdminError):
    """Input failed validation."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the validation error.

        Args:
            message: Human-readable error message.
            field: Name of the offending field, if known.
            cause: Original exception, if this wraps one.
        """
        super().__init__(message, cause=cause, details={"field": field})
        self.field = field


class NotFoundError(AdminError):
    """A referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        entity: str,
        entity_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the error with the missing entity.

        Args:
            entity: Kind of entity (e.g. "item", "document").
            entity_id: Identifier that was looked up.
            cause: Original exception, if this wraps one.
        """
        label = f"{entity} {entity_id}" if entity_id else entity
        super().__init__(
            f"Not found: {label}",
            cause=cause,
            details={"entity": entity, "entity_id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ExportError(AdminError):
    """Data export failed."""

    kind = ErrorKind.EXPORT


class UnknownError(AdminError):
    """Unclassified failure."""

    kind = ErrorKind.UNKNOWN


class InvalidTransitionError(ValidationError):
    """Raised when an item status change is not an edge of the lifecycle graph."""

    def __init__(self, from_status: Any, to_status: Any) -> None:
        """Initialize the error.

        Args:
            from_status: The item's current status.
            to_status: The attempted target status.
        """
        from_name = getattr(from_status, "value", str(from_status))
        to_name = getattr(to_status, "value", str(to_status))
        super().__init__(
            f"Invalid item status transition: {from_name} -> {to_name}",
            field="status",
        )
        self.from_status = from_status
        self.to_status = to_status
        self.details.update({"from_status": from_name, "to_status": to_name})


class BatchLimitExceededError(ValidationError):
    """Raised when an atomic batch holds more operations than the store allows."""

    def __init__(self, size: int, limit: int) -> None:
        """Initialize the error.

        Args:
            size: Number of operations submitted.
            limit: Store's maximum atomic batch size.
        """
        super().__init__(
            f"Atomic batch of {size} operations exceeds limit of {limit}",
            field="ops",
        )
        self.size = size
        self.limit = limit
