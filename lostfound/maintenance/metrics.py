"""Metrics for maintenance jobs."""

import threading
from dataclasses import dataclass, field


@dataclass
class MaintenanceMetrics:
    """Counters for sweep and archive runs.

    Attributes:
        sweeps_total: Eligibility sweeps run.
        items_flagged_total: Items moved into the donation pipeline.
        sweep_item_errors_total: Per-item sweep failures.
        archive_runs_total: Archive compactions run.
        entries_archived_total: Ledger entries relocated to partitions.
        archive_batches_total: Archive batches committed.
        archive_batch_failures_total: Archive batches that failed.
        last_sweep_duration_ms: Duration of the most recent sweep.
        last_archive_duration_ms: Duration of the most recent archive run.
    """

    sweeps_total: int = 0
    items_flagged_total: int = 0
    sweep_item_errors_total: int = 0
    archive_runs_total: int = 0
    entries_archived_total: int = 0
    archive_batches_total: int = 0
    archive_batch_failures_total: int = 0
    last_sweep_duration_ms: float = 0.0
    last_archive_duration_ms: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_sweep(self, flagged: int, errors: int, duration_ms: float) -> None:
        """Record a completed sweep."""
        with self._lock:
            self.sweeps_total += 1
            self.items_flagged_total += flagged
            self.sweep_item_errors_total += errors
            self.last_sweep_duration_ms = duration_ms

    def record_archive_batch(self, ok: bool) -> None:
        """Record one archive batch outcome."""
        with self._lock:
            if ok:
                self.archive_batches_total += 1
            else:
                self.archive_batch_failures_total += 1

    def record_archive(self, archived: int, duration_ms: float) -> None:
        """Record a completed archive run."""
        with self._lock:
            self.archive_runs_total += 1
            self.entries_archived_total += archived
            self.last_archive_duration_ms = duration_ms

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "sweeps_total": self.sweeps_total,
            "items_flagged_total": self.items_flagged_total,
            "sweep_item_errors_total": self.sweep_item_errors_total,
            "archive_runs_total": self.archive_runs_total,
            "entries_archived_total": self.entries_archived_total,
            "archive_batches_total": self.archive_batches_total,
            "archive_batch_failures_total": self.archive_batch_failures_total,
            "last_sweep_duration_ms": self.last_sweep_duration_ms,
            "last_archive_duration_ms": self.last_archive_duration_ms,
        }
