"""Persisted value encoding.

Timestamps are stored as integer epoch milliseconds so that range filters
and ordering inside the store are numeric.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _coerce_timestamp(value: Any) -> Any:
    # bool is an int subclass and never a timestamp
    if isinstance(value, int) and not isinstance(value, bool):
        return from_epoch_ms(value)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


Timestamp = Annotated[
    datetime,
    BeforeValidator(_coerce_timestamp),
    PlainSerializer(to_epoch_ms, return_type=int, when_used="json"),
]
"""Datetime field that round-trips through the store as epoch milliseconds."""


def encode_value(value: Any) -> Any:
    """Encode a filter or cursor value the same way documents are stored."""
    if isinstance(value, datetime):
        return to_epoch_ms(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list | tuple):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    return value
