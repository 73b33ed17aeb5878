"""SQLite-backed document store."""

import base64
import json
import queue
import re
import sqlite3
import threading
import time
import uuid
from collections.abc import Generator, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Final

import structlog

from lostfound.errors import BatchLimitExceededError, NotFoundError, ValidationError
from lostfound.store.codec import encode_value
from lostfound.store.errors import InvalidCursorError, StoreConnectionError
from lostfound.store.metrics import StoreMetrics, TransactionContext
from lostfound.store.migrations import CURRENT_VERSION, MigrationManager
from lostfound.store.protocols import (
    BatchOp,
    BatchOpKind,
    ChangeEvent,
    ChangeType,
    Document,
    FieldFilter,
    FilterOp,
    OrderBy,
    QueryPage,
    matches_all,
)


logger = structlog.get_logger()

DEFAULT_MAX_BATCH_OPS: Final = 1000
DEFAULT_MAX_PENDING_EVENTS: Final = 10_000

_FIELD_PATH = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

_SQL_OPS: Final[dict[FilterOp, str]] = {
    FilterOp.EQ: "IS",
    FilterOp.NE: "IS NOT",
    FilterOp.LT: "<",
    FilterOp.LE: "<=",
    FilterOp.GT: ">",
    FilterOp.GE: ">=",
}


def _json_path(field: str) -> str:
    """Build a quoted JSON path literal for a validated field name."""
    if not _FIELD_PATH.match(field):
        msg = f"Invalid field path: {field!r}"
        raise ValidationError(msg, field="field")
    return f"'$.{field}'"


def _lookup(data: dict[str, Any], field: str) -> Any:
    value: Any = data
    for part in field.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _encode_cursor(values: list[Any]) -> str:
    raw = json.dumps(values, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode()


def _decode_cursor(cursor: str, expected_len: int) -> list[Any]:
    try:
        values = json.loads(base64.urlsafe_b64decode(cursor.encode()))
    except (ValueError, TypeError) as e:
        raise InvalidCursorError(cursor) from e
    if not isinstance(values, list) or len(values) != expected_len:
        raise InvalidCursorError(cursor)
    return values


class _QueueSubscription:
    """Subscription backed by a bounded queue.

    When ``max_pending`` events are waiting, each new event evicts the
    oldest one and increments ``dropped``.
    """

    _CLOSED = object()

    def __init__(
        self,
        store: "SqliteDocumentStore",
        collection: str,
        filters: Sequence[FieldFilter],
        max_pending: int = DEFAULT_MAX_PENDING_EVENTS,
    ) -> None:
        if max_pending <= 0:
            msg = f"max_pending must be positive, got {max_pending}"
            raise ValidationError(msg, field="max_pending")
        self.collection = collection
        self.filters = tuple(filters)
        self.dropped = 0
        self._store = store
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max_pending)
        self._put_lock = threading.Lock()
        self._closed = False

    def _put(self, item: Any) -> None:
        with self._put_lock:
            while True:
                try:
                    self._queue.put_nowait(item)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    self.dropped += 1

    def deliver(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._put(event)

    def poll(self, timeout: float | None = None) -> ChangeEvent | None:
        """Return the next event, or None after timeout or close."""
        if self._closed and self._queue.empty():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is self._CLOSED:
            return None
        return item

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            event = self.poll()
            if event is None:
                return
            yield event

    def close(self) -> None:
        """Stop receiving events and wake any blocked reader."""
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self)
        self._put(self._CLOSED)


class SqliteDocumentStore:
    """Document store persisted in a single SQLite table.

    Each document is a JSON body keyed by ``(collection, doc_id)``.
    Filters and ordering run through ``json_extract``. One connection is
    shared across threads and serialized with a re-entrant lock; every
    write runs in its own transaction, and ``atomic_batch`` commits its
    operations all-or-nothing.
    """

    def __init__(
        self,
        db_path: Path | str,
        max_batch_ops: int = DEFAULT_MAX_BATCH_OPS,
        metrics: StoreMetrics | None = None,
    ) -> None:
        """Initialize the document store.

        Args:
            db_path: Path to SQLite database file (``:memory:`` allowed).
            max_batch_ops: Maximum operations per atomic batch.
            metrics: Metrics recorder (shared instance if omitted).
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._max_batch_ops = max_batch_ops
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._subscribers: list[_QueueSubscription] = []
        self._sub_lock = threading.Lock()
        self._metrics = metrics or StoreMetrics.get_instance()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def max_batch_ops(self) -> int:
        """Maximum number of operations in one atomic batch."""
        return self._max_batch_ops

    @property
    def metrics(self) -> StoreMetrics:
        """Get the store metrics."""
        return self._metrics

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        if str(self._db_path) != ":memory:":
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.info("connecting_to_database")
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()
        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection and end all subscriptions."""
        with self._sub_lock:
            subscribers = list(self._subscribers)
        for sub in subscribers:
            sub.close()
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("database_closed")

    def __enter__(self) -> "SqliteDocumentStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(
        self, operation: str
    ) -> Generator[tuple[sqlite3.Connection, TransactionContext]]:
        """Run a transaction with timing, logging and change publication.

        Args:
            operation: Name of the operation for logging.

        Yields:
            The connection and the transaction context.
        """
        with self._lock:
            conn = self._ensure_connected()
            tx_id = str(uuid.uuid4())[:8]
            start_ns = time.perf_counter_ns()
            ctx = TransactionContext(
                tx_id=tx_id, start_time_ns=start_ns, operation=operation
            )
            try:
                yield conn, ctx
                conn.commit()
            except Exception:
                conn.rollback()
                self._metrics.record_tx_failure()
                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(
                        (time.perf_counter_ns() - start_ns) / 1_000_000, 2
                    ),
                )
                raise

            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._metrics.record_tx_duration(duration_ms)
            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )
            self._publish(ctx.changes)

    # ===== Row helpers =====

    @staticmethod
    def _read_body(
        conn: sqlite3.Connection, collection: str, doc_id: str
    ) -> dict[str, Any] | None:
        row = conn.execute(
            "SELECT body FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        ).fetchone()
        return None if row is None else json.loads(row["body"])

    def _apply_set(
        self,
        conn: sqlite3.Connection,
        ctx: TransactionContext,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
    ) -> None:
        existed = self._read_body(conn, collection, doc_id) is not None
        body = encode_value(data)
        conn.execute(
            """
            INSERT INTO documents (collection, doc_id, body, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(collection, doc_id)
            DO UPDATE SET body = excluded.body, updated_at = excluded.updated_at
            """,
            (collection, doc_id, json.dumps(body, sort_keys=True), time.time_ns()),
        )
        ctx.add_affected_rows(1)
        ctx.changes.append(
            ChangeEvent(
                ChangeType.MODIFIED if existed else ChangeType.ADDED,
                collection,
                doc_id,
                body,
            )
        )

    def _apply_update(
        self,
        conn: sqlite3.Connection,
        ctx: TransactionContext,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
    ) -> None:
        current = self._read_body(conn, collection, doc_id)
        if current is None:
            raise NotFoundError("document", f"{collection}/{doc_id}")
        body = {**current, **encode_value(fields)}
        conn.execute(
            "UPDATE documents SET body = ?, updated_at = ? "
            "WHERE collection = ? AND doc_id = ?",
            (json.dumps(body, sort_keys=True), time.time_ns(), collection, doc_id),
        )
        ctx.add_affected_rows(1)
        ctx.changes.append(ChangeEvent(ChangeType.MODIFIED, collection, doc_id, body))

    def _apply_delete(
        self,
        conn: sqlite3.Connection,
        ctx: TransactionContext,
        collection: str,
        doc_id: str,
    ) -> bool:
        current = self._read_body(conn, collection, doc_id)
        if current is None:
            return False
        conn.execute(
            "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        ctx.add_affected_rows(1)
        ctx.changes.append(ChangeEvent(ChangeType.REMOVED, collection, doc_id, current))
        return True

    # ===== Single-document operations =====

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Get a document body, or None if absent."""
        with self._lock:
            return self._read_body(self._ensure_connected(), collection, doc_id)

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or overwrite a document."""
        with self._transaction("set") as (conn, ctx):
            self._apply_set(conn, ctx, collection, doc_id, data)
        self._metrics.record_writes()

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge top-level fields into an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        with self._transaction("update") as (conn, ctx):
            self._apply_update(conn, ctx, collection, doc_id, fields)
        self._metrics.record_writes()

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document.

        Returns:
            True if the document existed.
        """
        with self._transaction("delete") as (conn, ctx):
            existed = self._apply_delete(conn, ctx, collection, doc_id)
        if existed:
            self._metrics.record_deletes()
        return existed

    # ===== Batches =====

    def atomic_batch(self, ops: Sequence[BatchOp]) -> None:
        """Commit a batch of operations all-or-nothing.

        Raises:
            BatchLimitExceededError: If the batch exceeds ``max_batch_ops``.
            NotFoundError: If an UPDATE targets a missing document.
        """
        if len(ops) > self._max_batch_ops:
            raise BatchLimitExceededError(len(ops), self._max_batch_ops)
        if not ops:
            return

        writes = deletes = 0
        with self._transaction("atomic_batch") as (conn, ctx):
            for op in ops:
                match op.kind:
                    case BatchOpKind.SET:
                        self._apply_set(conn, ctx, op.collection, op.doc_id, op.data or {})
                        writes += 1
                    case BatchOpKind.UPDATE:
                        self._apply_update(
                            conn, ctx, op.collection, op.doc_id, op.data or {}
                        )
                        writes += 1
                    case BatchOpKind.DELETE:
                        if self._apply_delete(conn, ctx, op.collection, op.doc_id):
                            deletes += 1

        self._metrics.record_writes(writes)
        self._metrics.record_deletes(deletes)
        self._metrics.record_batch_commit(len(ops))
        self._log.info("batch_committed", ops=len(ops), writes=writes, deletes=deletes)

    # ===== Queries =====

    @staticmethod
    def _filter_sql(
        filters: Sequence[FieldFilter], sql: list[str], params: list[Any]
    ) -> None:
        for f in filters:
            sql.append(f"AND json_extract(body, {_json_path(f.field)}) {_SQL_OPS[f.op]} ?")
            params.append(encode_value(f.value))

    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> QueryPage:
        """Query a collection.

        Results are ordered by ``order_by`` with the document id as
        tie-breaker (document id alone when no order is given). The cursor
        is keyset-based, so pages stay consistent while earlier documents
        are deleted.

        Args:
            collection: Collection name.
            filters: Predicates that must all hold.
            order_by: Sort order.
            limit: Maximum number of documents in the page.
            cursor: Cursor returned by the previous page.

        Returns:
            One page of documents and the cursor for the next page.
        """
        sql = ["SELECT doc_id, body FROM documents WHERE collection = ?"]
        params: list[Any] = [collection]
        self._filter_sql(filters, sql, params)

        direction = "DESC" if order_by and order_by.descending else "ASC"
        cmp = "<" if direction == "DESC" else ">"
        if order_by is not None:
            key = f"json_extract(body, {_json_path(order_by.field)})"
            if cursor is not None:
                value, last_id = _decode_cursor(cursor, 2)
                sql.append(f"AND ({key} {cmp} ? OR ({key} = ? AND doc_id {cmp} ?))")
                params.extend([value, value, last_id])
            sql.append(f"ORDER BY {key} {direction}, doc_id {direction}")
        else:
            if cursor is not None:
                (last_id,) = _decode_cursor(cursor, 1)
                sql.append("AND doc_id > ?")
                params.append(last_id)
            sql.append("ORDER BY doc_id ASC")

        if limit is not None:
            sql.append("LIMIT ?")
            params.append(limit + 1)

        with self._lock:
            rows = self._ensure_connected().execute(" ".join(sql), params).fetchall()
        self._metrics.record_query()

        documents = [Document(row["doc_id"], json.loads(row["body"])) for row in rows]
        next_cursor = None
        if limit is not None and len(documents) > limit:
            documents = documents[:limit]
            last = documents[-1]
            if order_by is not None:
                next_cursor = _encode_cursor(
                    [_lookup(last.data, order_by.field), last.doc_id]
                )
            else:
                next_cursor = _encode_cursor([last.doc_id])
        return QueryPage(documents=documents, next_cursor=next_cursor)

    def count(self, collection: str, filters: Sequence[FieldFilter] = ()) -> int:
        """Count documents matching the filters."""
        sql = ["SELECT COUNT(*) FROM documents WHERE collection = ?"]
        params: list[Any] = [collection]
        self._filter_sql(filters, sql, params)
        with self._lock:
            row = self._ensure_connected().execute(" ".join(sql), params).fetchone()
        self._metrics.record_query()
        return int(row[0])

    def list_collections(self, prefix: str = "") -> list[str]:
        """List non-empty collections whose name starts with prefix."""
        with self._lock:
            rows = self._ensure_connected().execute(
                "SELECT DISTINCT collection FROM documents "
                "WHERE substr(collection, 1, ?) = ? ORDER BY collection",
                (len(prefix), prefix),
            ).fetchall()
        return [row["collection"] for row in rows]

    # ===== Subscriptions =====

    def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        max_pending: int = DEFAULT_MAX_PENDING_EVENTS,
    ) -> _QueueSubscription:
        """Subscribe to committed changes in a collection.

        Removals are delivered when the document matched the filters
        before it was deleted. A subscriber that falls ``max_pending``
        events behind loses the oldest ones; the count is kept in
        ``dropped``.
        """
        sub = _QueueSubscription(self, collection, filters, max_pending)
        with self._sub_lock:
            self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: _QueueSubscription) -> None:
        with self._sub_lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    def _publish(self, changes: list[ChangeEvent]) -> None:
        if not changes:
            return
        with self._sub_lock:
            subscribers = list(self._subscribers)
        for sub in subscribers:
            for event in changes:
                if event.collection == sub.collection and matches_all(
                    event.data, sub.filters
                ):
                    sub.deliver(event)
