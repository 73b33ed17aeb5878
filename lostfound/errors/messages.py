"""User-facing message catalog keyed by error kind.

Internal messages never reach users; only the text below does, plus the
field or entity name for validation and not-found errors.
"""

from typing import Final

from lostfound.errors.exceptions import AdminError, NotFoundError, ValidationError
from lostfound.errors.kinds import ErrorKind


USER_MESSAGES: Final[dict[ErrorKind, str]] = {
    ErrorKind.NETWORK: "Network connection failed. Please check your internet connection and try again.",
    ErrorKind.STORE: "Database operation failed. Please try again.",
    ErrorKind.STORAGE: "File storage operation failed. Please try again.",
    ErrorKind.NOTIFICATION: "Failed to send notification. Please try again.",
    ErrorKind.AUTHENTICATION: "Authentication failed. Please sign in again.",
    ErrorKind.PERMISSION: "You don't have permission to perform this action.",
    ErrorKind.VALIDATION: "Invalid input. Please check your data and try again.",
    ErrorKind.NOT_FOUND: "The requested item was not found.",
    ErrorKind.EXPORT: "Failed to export data. Please try again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}

ERROR_TITLES: Final[dict[ErrorKind, str]] = {
    ErrorKind.NETWORK: "Connection Error",
    ErrorKind.STORE: "Database Error",
    ErrorKind.STORAGE: "Storage Error",
    ErrorKind.NOTIFICATION: "Notification Failed",
    ErrorKind.AUTHENTICATION: "Authentication Required",
    ErrorKind.PERMISSION: "Access Denied",
    ErrorKind.VALIDATION: "Invalid Input",
    ErrorKind.NOT_FOUND: "Not Found",
    ErrorKind.EXPORT: "Export Failed",
    ErrorKind.UNKNOWN: "Error",
}


def get_user_message(error: AdminError) -> str:
    """Get the user-facing message for a classified error.

    Args:
        error: The classified error.

    Returns:
        Catalog message, qualified with the field or entity when known.
    """
    base = USER_MESSAGES[error.kind]
    if isinstance(error, ValidationError) and error.field:
        return f"Invalid {error.field}. Please check your data and try again."
    if isinstance(error, NotFoundError) and error.entity != "entity":
        return f"The requested {error.entity} was not found."
    return base


def get_error_title(error: AdminError) -> str:
    """Get the dialog title for a classified error."""
    return ERROR_TITLES[error.kind]
