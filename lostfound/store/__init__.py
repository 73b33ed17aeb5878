"""Document store interface and its SQLite implementation."""

from lostfound.store.codec import Timestamp, encode_value, from_epoch_ms, to_epoch_ms
from lostfound.store.errors import (
    InvalidCursorError,
    MigrationError,
    StoreConnectionError,
)
from lostfound.store.metrics import StoreMetrics
from lostfound.store.protocols import (
    BatchOp,
    BatchOpKind,
    ChangeEvent,
    ChangeType,
    Document,
    DocumentStore,
    FieldFilter,
    FilterOp,
    OrderBy,
    QueryPage,
    Subscription,
)
from lostfound.store.scan import iter_documents
from lostfound.store.sqlite_store import DEFAULT_MAX_BATCH_OPS, SqliteDocumentStore


__all__ = [
    "DEFAULT_MAX_BATCH_OPS",
    "BatchOp",
    "BatchOpKind",
    "ChangeEvent",
    "ChangeType",
    "Document",
    "DocumentStore",
    "FieldFilter",
    "FilterOp",
    "InvalidCursorError",
    "MigrationError",
    "OrderBy",
    "QueryPage",
    "SqliteDocumentStore",
    "StoreConnectionError",
    "StoreMetrics",
    "Subscription",
    "Timestamp",
    "encode_value",
    "from_epoch_ms",
    "iter_documents",
    "to_epoch_ms",
]
