"""Error taxonomy, exception hierarchy, classifier and message catalog."""

from lostfound.errors.classifier import classify
from lostfound.errors.exceptions import (
    AdminError,
    AuthenticationError,
    BatchLimitExceededError,
    ExportError,
    InvalidTransitionError,
    NetworkError,
    NotFoundError,
    NotificationError,
    PermissionDeniedError,
    StorageError,
    StoreError,
    UnknownError,
    ValidationError,
)
from lostfound.errors.kinds import RETRYABLE_KINDS, ErrorKind, is_retryable
from lostfound.errors.messages import (
    ERROR_TITLES,
    USER_MESSAGES,
    get_error_title,
    get_user_message,
)


__all__ = [
    "ERROR_TITLES",
    "RETRYABLE_KINDS",
    "USER_MESSAGES",
    "AdminError",
    "AuthenticationError",
    "BatchLimitExceededError",
    "ErrorKind",
    "ExportError",
    "InvalidTransitionError",
    "NetworkError",
    "NotFoundError",
    "NotificationError",
    "PermissionDeniedError",
    "StorageError",
    "StoreError",
    "UnknownError",
    "ValidationError",
    "classify",
    "get_error_title",
    "get_user_message",
    "is_retryable",
]
