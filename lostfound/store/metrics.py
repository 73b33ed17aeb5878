"""Metrics collection for the document store."""

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar


if TYPE_CHECKING:
    from lostfound.store.protocols import ChangeEvent


@dataclass
class StoreMetrics:
    """Metrics for document store operations.

    Attributes:
        docs_written_total: Documents created, overwritten or merged.
        docs_deleted_total: Documents deleted.
        queries_total: Queries executed.
        batch_commits_total: Atomic batches committed.
        batch_sizes: Operation count of each committed batch, in order.
        tx_duration_ms: Cumulative transaction duration in milliseconds.
        tx_count: Number of committed transactions.
        tx_failures_total: Transactions rolled back.
    """

    docs_written_total: int = 0
    docs_deleted_total: int = 0
    queries_total: int = 0
    batch_commits_total: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    tx_duration_ms: float = 0.0
    tx_count: int = 0
    tx_failures_total: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_writes(self, count: int = 1) -> None:
        """Record written documents."""
        with self._lock:
            self.docs_written_total += count

    def record_deletes(self, count: int = 1) -> None:
        """Record deleted documents."""
        with self._lock:
            self.docs_deleted_total += count

    def record_query(self) -> None:
        """Record an executed query."""
        with self._lock:
            self.queries_total += 1

    def record_batch_commit(self, size: int) -> None:
        """Record a committed atomic batch.

        Args:
            size: Number of operations in the batch.
        """
        with self._lock:
            self.batch_commits_total += 1
            self.batch_sizes.append(size)

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.tx_duration_ms += duration_ms
            self.tx_count += 1

    def record_tx_failure(self) -> None:
        """Record a rolled-back transaction."""
        with self._lock:
            self.tx_failures_total += 1

    @property
    def avg_tx_duration_ms(self) -> float:
        """Calculate average transaction duration."""
        if self.tx_count == 0:
            return 0.0
        return self.tx_duration_ms / self.tx_count

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "docs_written_total": self.docs_written_total,
            "docs_deleted_total": self.docs_deleted_total,
            "queries_total": self.queries_total,
            "batch_commits_total": self.batch_commits_total,
            "tx_duration_ms": self.tx_duration_ms,
            "tx_count": self.tx_count,
            "tx_failures_total": self.tx_failures_total,
            "avg_tx_duration_ms": self.avg_tx_duration_ms,
        }


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
        changes: Change events published once the transaction commits.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)
    changes: list["ChangeEvent"] = field(default_factory=list)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count."""
        self.affected_rows += rows
