"""Map arbitrary exceptions onto the fixed error taxonomy."""

import sqlite3

import pydantic

from lostfound.errors.exceptions import (
    AdminError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    StoreError,
    UnknownError,
    ValidationError,
)


def classify(exc: BaseException) -> AdminError:
    """Classify an exception.

    Already-classified errors pass through unchanged. Anything else is
    wrapped in the matching ``AdminError`` subclass with the original
    exception kept as ``cause``.

    Args:
        exc: The exception to classify.

    Returns:
        A classified error.
    """
    if isinstance(exc, AdminError):
        return exc

    message = str(exc) or type(exc).__name__

    # Order matters: PermissionError, TimeoutError and ConnectionError are
    # all OSError subclasses.
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(message, cause=exc)
    if isinstance(exc, TimeoutError | ConnectionError):
        return NetworkError(message, cause=exc)
    if isinstance(exc, sqlite3.Error):
        return StoreError(message, cause=exc)
    if isinstance(exc, OSError):
        return StorageError(message, cause=exc)
    if isinstance(exc, pydantic.ValidationError | ValueError):
        return ValidationError(message, cause=exc)
    if isinstance(exc, LookupError):
        entity_id = str(exc.args[0]) if exc.args else None
        return NotFoundError("entity", entity_id, cause=exc)
    return UnknownError(message, cause=exc)
