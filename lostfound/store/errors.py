"""Infrastructure exceptions for the SQLite document store.

Domain-level failures (missing documents, oversized batches) use the
shared taxonomy in ``lostfound.errors``; the classes here cover the
connection and schema layer, plus rejected pagination cursors.
"""

from lostfound.errors import StoreError, ValidationError


class StoreConnectionError(StoreError):
    """Raised when the database connection is missing or unusable."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class MigrationError(StoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")


class InvalidCursorError(ValidationError):
    """Raised when a pagination cursor cannot be decoded.

    The cursor comes from the caller, so this is bad input and never retried.
    """

    def __init__(self, cursor: str) -> None:
        """Initialize the error with the rejected cursor."""
        super().__init__(f"Invalid query cursor: {cursor!r}", field="cursor")
        self.cursor = cursor
