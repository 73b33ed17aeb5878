"""Result types for maintenance runs."""

from dataclasses import dataclass, field
from datetime import datetime

from lostfound.errors import AdminError
from lostfound.lifecycle.eligibility import EligibilityAnomaly


@dataclass(frozen=True)
class ItemFailure:
    """A failure attributed to one item or ledger entry."""

    target_id: str
    error: AdminError

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for logging/serialization."""
        return {"target_id": self.target_id, **self.error.to_dict()}


@dataclass(frozen=True)
class BatchFailure:
    """An archive batch that could not be committed."""

    entry_ids: tuple[str, ...]
    error: AdminError


@dataclass(frozen=True)
class ItemAnomaly:
    """An item skipped because its report timestamp is unusable."""

    item_id: str
    anomaly: EligibilityAnomaly


@dataclass
class SweepResult:
    """Outcome of one eligibility sweep.

    ``errors`` holds items whose transition could not be persisted.
    ``audit_errors`` holds items that were flagged but whose ledger entry
    failed; those items still count towards ``flagged_count``.
    """

    started_at: datetime
    flagged_count: int = 0
    scanned_count: int = 0
    flagged_ids: list[str] = field(default_factory=list)
    errors: list[ItemFailure] = field(default_factory=list)
    audit_errors: list[ItemFailure] = field(default_factory=list)
    anomalies: list[ItemAnomaly] = field(default_factory=list)
    cancelled: bool = False
    notification_error: AdminError | None = None
    summary_error: AdminError | None = None

    @property
    def success(self) -> bool:
        """True when no item failed and the run was not cancelled."""
        return not self.errors and not self.cancelled


@dataclass
class ArchiveResult:
    """Outcome of one archive compaction run."""

    started_at: datetime
    cutoff: datetime
    archived_count: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    partitions: list[str] = field(default_factory=list)
    errors: list[BatchFailure | ItemFailure] = field(default_factory=list)
    cancelled: bool = False
    summary_error: AdminError | None = None

    @property
    def success(self) -> bool:
        """True when every selected entry was archived."""
        return not self.errors and not self.cancelled
