"""Metrics for the audit ledger."""

import threading
from dataclasses import dataclass, field


@dataclass
class LedgerMetrics:
    """Counters for ledger activity.

    Attributes:
        appended_total: Entries persisted.
        append_failures_total: Appends that failed after validation.
        rejected_total: Appends rejected by validation.
        searches_total: Text searches served.
    """

    appended_total: int = 0
    append_failures_total: int = 0
    rejected_total: int = 0
    searches_total: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_append(self) -> None:
        """Record a persisted entry."""
        with self._lock:
            self.appended_total += 1

    def record_append_failure(self) -> None:
        """Record a failed append."""
        with self._lock:
            self.append_failures_total += 1

    def record_rejected(self) -> None:
        """Record an append rejected by validation."""
        with self._lock:
            self.rejected_total += 1

    def record_search(self) -> None:
        """Record a text search."""
        with self._lock:
            self.searches_total += 1

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary."""
        return {
            "appended_total": self.appended_total,
            "append_failures_total": self.append_failures_total,
            "rejected_total": self.rejected_total,
            "searches_total": self.searches_total,
        }
