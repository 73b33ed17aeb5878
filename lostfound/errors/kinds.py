"""Error taxonomy shared by every layer."""

from enum import Enum
from typing import Final


class ErrorKind(str, Enum):
    """Fixed classification of faults.

    Transient kinds (network, store, storage, notification) are retried
    with backoff; everything else fails immediately.
    """

    NETWORK = "NETWORK"
    STORE = "STORE"
    STORAGE = "STORAGE"
    NOTIFICATION = "NOTIFICATION"
    AUTHENTICATION = "AUTHENTICATION"
    PERMISSION = "PERMISSION"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    EXPORT = "EXPORT"
    UNKNOWN = "UNKNOWN"


RETRYABLE_KINDS: Final[dict[ErrorKind, bool]] = {
    ErrorKind.NETWORK: True,
    ErrorKind.STORE: True,
    ErrorKind.STORAGE: True,
    ErrorKind.NOTIFICATION: True,
    ErrorKind.AUTHENTICATION: False,
    ErrorKind.PERMISSION: False,
    ErrorKind.VALIDATION: False,
    ErrorKind.NOT_FOUND: False,
    ErrorKind.EXPORT: False,
    ErrorKind.UNKNOWN: False,
}


def is_retryable(kind: ErrorKind) -> bool:
    """Return the fixed retryable flag for an error kind."""
    return RETRYABLE_KINDS[kind]
