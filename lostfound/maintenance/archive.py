"""Archive compaction: relocate aged ledger entries into monthly partitions."""

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final

import structlog

from lostfound.errors import AdminError, BatchLimitExceededError, ValidationError, classify
from lostfound.ledger import (
    LEDGER_COLLECTION,
    ActionType,
    AuditLedger,
    LedgerEntry,
    TargetType,
    archive_partition_name,
)
from lostfound.maintenance.cancellation import CancellationToken
from lostfound.maintenance.metrics import MaintenanceMetrics
from lostfound.maintenance.results import ArchiveResult, BatchFailure, ItemFailure
from lostfound.retry import RetryPolicy, retry_operation
from lostfound.store.codec import from_epoch_ms
from lostfound.store.protocols import (
    BatchOp,
    Document,
    DocumentStore,
    FieldFilter,
    FilterOp,
    OrderBy,
)


logger = structlog.get_logger()

DEFAULT_RETENTION: Final = timedelta(days=365)
DEFAULT_BATCH_SIZE: Final = 500

# Each archived entry costs one upsert plus one delete.
OPS_PER_ENTRY: Final = 2

_OLDEST_FIRST: Final = OrderBy("timestamp")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ArchiveCompactor:
    """Moves ledger entries older than the retention window into
    ``activity_logs_archive_YYYY-MM`` partitions.

    Every batch is one atomic commit of partition upserts plus live
    deletes, keyed by the original entry id. A rerun after a crash simply
    re-selects whatever is still live and older than the cutoff; upserts
    make re-processing a committed entry harmless.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: DocumentStore,
        ledger: AuditLedger,
        retention: timedelta = DEFAULT_RETENTION,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        metrics: MaintenanceMetrics | None = None,
    ) -> None:
        """Initialize the compactor.

        Args:
            store: Document store holding the live ledger and partitions.
            ledger: Ledger receiving the summary entry.
            retention: Entries older than ``now - retention`` are archived.
            batch_size: Entries per atomic batch.
            retry_policy: Retry for each batch commit.
            clock: Returns the current aware datetime.
            sleep: Sleep function used between retries.
            metrics: Maintenance metrics recorder.

        Raises:
            ValidationError: If batch_size is not positive.
            BatchLimitExceededError: If a full batch would exceed the
                store's atomic batch limit.
        """
        if batch_size <= 0:
            msg = f"Archive batch size must be positive, got {batch_size}"
            raise ValidationError(msg, field="batch_size")
        if batch_size * OPS_PER_ENTRY > store.max_batch_ops:
            raise BatchLimitExceededError(batch_size * OPS_PER_ENTRY, store.max_batch_ops)

        self._store = store
        self._ledger = ledger
        self._retention = retention
        self._batch_size = batch_size
        self._retry_policy = retry_policy or RetryPolicy(max_retries=0)
        self._clock = clock
        self._sleep = sleep
        self._metrics = metrics or MaintenanceMetrics()
        self._log = logger.bind(component="archive")

    @property
    def batch_size(self) -> int:
        """Entries per atomic batch."""
        return self._batch_size

    def cutoff(self, now: datetime | None = None) -> datetime:
        """Entries strictly older than this are archivable."""
        return (now or self._clock()) - self._retention

    def run(self, token: CancellationToken | None = None) -> ArchiveResult:
        """Run one compaction.

        Cancellation is checked between batches. A failed batch is recorded
        and skipped; the keyset cursor moves past it so the run continues
        with later entries instead of re-selecting the same batch.

        Args:
            token: Cancellation token checked before each batch.

        Returns:
            Counts, committed batch sizes, partitions and failures.
        """
        token = token or CancellationToken()
        now = self._clock()
        cutoff = self.cutoff(now)
        result = ArchiveResult(started_at=now, cutoff=cutoff)
        partitions: set[str] = set()
        start_ns = time.perf_counter_ns()
        self._log.info(
            "archive_started", cutoff=cutoff.isoformat(), batch_size=self._batch_size
        )

        aged = [FieldFilter("timestamp", FilterOp.LT, cutoff)]
        cursor: str | None = None
        while True:
            if token.is_cancelled:
                result.cancelled = True
                self._log.warning("archive_cancelled", archived=result.archived_count)
                break

            page = retry_operation(
                lambda: self._store.query(
                    LEDGER_COLLECTION,
                    filters=aged,
                    order_by=_OLDEST_FIRST,
                    limit=self._batch_size,
                    cursor=cursor,
                ),
                self._retry_policy,
                sleep=self._sleep,
                operation="archive_select",
            )
            if not page.documents:
                break

            self._archive_batch(page.documents, result, partitions)

            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        result.partitions = sorted(partitions)
        self._write_summary(now, result)

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_archive(result.archived_count, duration_ms)
        self._log.info(
            "archive_complete",
            archived=result.archived_count,
            batches=len(result.batch_sizes),
            partitions=result.partitions,
            errors=len(result.errors),
            cancelled=result.cancelled,
            duration_ms=round(duration_ms, 2),
        )
        return result

    def _archive_batch(
        self,
        documents: list[Document],
        result: ArchiveResult,
        partitions: set[str],
    ) -> None:
        """Commit one batch of relocations."""
        ops: list[BatchOp] = []
        batch_partitions: set[str] = set()
        for doc in documents:
            try:
                partition = archive_partition_name(
                    from_epoch_ms(int(doc.data["timestamp"]))
                )
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                result.errors.append(ItemFailure(doc.doc_id, classify(e)))
                self._log.warning("archive_entry_unreadable", entry_id=doc.doc_id)
                continue
            batch_partitions.add(partition)
            ops.append(BatchOp.set(partition, doc.doc_id, doc.data))
            ops.append(BatchOp.delete(LEDGER_COLLECTION, doc.doc_id))

        if not ops:
            return

        entry_count = len(ops) // OPS_PER_ENTRY
        try:
            retry_operation(
                lambda: self._store.atomic_batch(ops),
                self._retry_policy,
                sleep=self._sleep,
                operation="archive_commit",
            )
        except AdminError as e:
            ids = tuple(op.doc_id for op in ops[::OPS_PER_ENTRY])
            result.errors.append(BatchFailure(ids, e))
            self._metrics.record_archive_batch(ok=False)
            self._log.error(
                "archive_batch_failed",
                entries=entry_count,
                error_kind=e.kind.value,
                error=e.message,
            )
            return

        result.archived_count += entry_count
        result.batch_sizes.append(entry_count)
        partitions.update(batch_partitions)
        self._metrics.record_archive_batch(ok=True)
        self._log.info(
            "archive_batch_committed",
            entries=entry_count,
            partitions=sorted(batch_partitions),
        )

    def _write_summary(self, now: datetime, result: ArchiveResult) -> None:
        partition_list = ", ".join(result.partitions)
        entry = LedgerEntry.system(
            ActionType.LOG_ARCHIVE,
            TargetType.SYSTEM,
            f"Archived {result.archived_count} ledger entries older than "
            f"{result.cutoff:%Y-%m-%d}",
            timestamp=now,
            target_id=partition_list,
            new_value=str(result.archived_count),
            metadata={
                "archived_count": result.archived_count,
                "archive_date": result.cutoff.isoformat(),
                "partitions": partition_list,
                "batch_count": len(result.batch_sizes),
                "error_count": len(result.errors),
                "cancelled": result.cancelled,
            },
        )
        try:
            self._ledger.append(entry)
        except AdminError as e:
            result.summary_error = e
