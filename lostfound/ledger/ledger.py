"""Append-only audit ledger over the document store."""

import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Final

import structlog

from lostfound.errors import AdminError, ValidationError, classify
from lostfound.ledger.metrics import LedgerMetrics
from lostfound.ledger.models import (
    ARCHIVE_PREFIX,
    LEDGER_COLLECTION,
    LedgerEntry,
    LedgerFilters,
    LedgerPage,
)
from lostfound.retry import RetryPolicy, retry_operation
from lostfound.store.protocols import DocumentStore, FieldFilter, FilterOp, OrderBy


logger = structlog.get_logger()

DEFAULT_PAGE_SIZE: Final = 50
DEFAULT_SEARCH_WINDOW: Final = 1000

_NEWEST_FIRST: Final = OrderBy("timestamp", descending=True)


def archive_partition_name(timestamp: datetime) -> str:
    """Name of the monthly archive partition holding entries from ``timestamp``."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return f"{ARCHIVE_PREFIX}{timestamp.astimezone(UTC):%Y-%m}"


def _new_entry_id() -> str:
    return uuid.uuid4().hex


class AuditLedger:
    """Append-only log of administrative and system actions.

    Appends either persist the entry or raise a classified error; nothing
    is swallowed here, so callers decide how an audit failure is surfaced.
    """

    def __init__(
        self,
        store: DocumentStore,
        metrics: LedgerMetrics | None = None,
        retry_policy: RetryPolicy | None = None,
        search_window: int = DEFAULT_SEARCH_WINDOW,
        id_factory: Callable[[], str] = _new_entry_id,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Backing document store.
            metrics: Metrics recorder (a fresh one if omitted).
            retry_policy: Retry for store writes; a single attempt if omitted.
            search_window: Number of recent entries scanned by ``search``.
            id_factory: Generates ids for entries that lack one.
            sleep: Sleep function used between retries.
        """
        self._store = store
        self._metrics = metrics or LedgerMetrics()
        self._retry_policy = retry_policy or RetryPolicy(max_retries=0)
        self._search_window = search_window
        self._id_factory = id_factory
        self._sleep = sleep
        self._log = logger.bind(component="ledger")

    @property
    def metrics(self) -> LedgerMetrics:
        """Get the ledger metrics."""
        return self._metrics

    @staticmethod
    def validate(entry: LedgerEntry) -> None:
        """Reject entries missing an actor or description.

        Raises:
            ValidationError: If actor id, actor email or description is blank.
        """
        for field in ("actor_id", "actor_email", "description"):
            if not getattr(entry, field).strip():
                msg = f"Ledger entry {field} must not be blank"
                raise ValidationError(msg, field=field)

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Validate and persist an entry.

        Args:
            entry: Entry to append; an id is assigned if absent.

        Returns:
            The persisted entry.

        Raises:
            ValidationError: If the entry is incomplete.
            AdminError: If the store write failed (after retries).
        """
        try:
            self.validate(entry)
        except ValidationError as e:
            self._metrics.record_rejected()
            self._log.warning("ledger_entry_rejected", field=e.field)
            raise

        entry_id = entry.id or self._id_factory()
        if entry.id != entry_id:
            entry = entry.model_copy(update={"id": entry_id})

        def write() -> None:
            self._store.set(LEDGER_COLLECTION, entry_id, entry.to_document())

        try:
            retry_operation(
                write, self._retry_policy, sleep=self._sleep, operation="ledger_append"
            )
        except AdminError as e:
            self._metrics.record_append_failure()
            self._log.error(
                "ledger_append_failed",
                entry_id=entry_id,
                action_type=entry.action_type.value,
                error_kind=e.kind.value,
                error=e.message,
            )
            raise

        self._metrics.record_append()
        self._log.debug(
            "ledger_entry_appended",
            entry_id=entry_id,
            action_type=entry.action_type.value,
            target_id=entry.target_id,
        )
        return entry

    def get(self, entry_id: str) -> LedgerEntry | None:
        """Get a live entry by id."""
        data = self._store.get(LEDGER_COLLECTION, entry_id)
        return None if data is None else LedgerEntry.from_document(data)

    def _page(
        self,
        collection: str,
        filters: LedgerFilters | None,
        cursor: str | None,
        limit: int,
    ) -> LedgerPage:
        if limit <= 0:
            msg = f"Page limit must be positive, got {limit}"
            raise ValidationError(msg, field="limit")
        field_filters = filters.to_field_filters() if filters else []
        try:
            page = self._store.query(
                collection,
                filters=field_filters,
                order_by=_NEWEST_FIRST,
                limit=limit,
                cursor=cursor,
            )
        except Exception as e:
            raise classify(e) from e
        return LedgerPage(
            entries=[LedgerEntry.from_document(d.data) for d in page.documents],
            next_cursor=page.next_cursor,
        )

    def query(
        self,
        filters: LedgerFilters | None = None,
        cursor: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> LedgerPage:
        """Query live entries, newest first.

        The ordering is by stored timestamp and is presentational only;
        it carries no causal guarantee between concurrent writers.

        Args:
            filters: Optional filters.
            cursor: Cursor from the previous page.
            limit: Page size.

        Returns:
            One page of entries.
        """
        return self._page(LEDGER_COLLECTION, filters, cursor, limit)

    def search(self, text: str, window: int | None = None) -> list[LedgerEntry]:
        """Approximate text search over the most recent entries.

        Matches a case-insensitive substring against actor email,
        description, target id and the action's display name. Only the
        newest ``window`` entries are scanned; older matches are missed.

        Args:
            text: Search text; blank returns the whole window.
            window: Number of recent entries to scan.

        Returns:
            Matching entries, newest first.
        """
        self._metrics.record_search()
        recent = self.query(limit=window or self._search_window).entries
        needle = text.strip().lower()
        if not needle:
            return recent
        return [entry for entry in recent if entry.matches_text(needle)]

    def count_older_than(self, cutoff: datetime) -> int:
        """Count live entries with a timestamp before ``cutoff``."""
        return self._store.count(
            LEDGER_COLLECTION, [FieldFilter("timestamp", FilterOp.LT, cutoff)]
        )

    def list_archive_partitions(self) -> list[str]:
        """Names of non-empty archive partitions, oldest first."""
        return self._store.list_collections(ARCHIVE_PREFIX)

    def query_archive(
        self,
        partition: str,
        filters: LedgerFilters | None = None,
        cursor: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> LedgerPage:
        """Query one archive partition, newest first.

        Args:
            partition: Partition name or its ``YYYY-MM`` suffix.
            filters: Optional filters.
            cursor: Cursor from the previous page.
            limit: Page size.
        """
        if not partition.startswith(ARCHIVE_PREFIX):
            partition = f"{ARCHIVE_PREFIX}{partition}"
        return self._page(partition, filters, cursor, limit)
