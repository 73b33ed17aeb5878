"""Service facade composing lifecycle, ledger, cache and maintenance."""

import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from datetime import UTC, datetime
from typing import Any, Final, TypeVar

import structlog

from lostfound.analytics import (
    DonationStats,
    StatusCounts,
    load_donation_stats,
    load_status_counts,
)
from lostfound.cache import DONATION_STATS_KEY, STATUS_COUNTS_KEY, ResultCache
from lostfound.errors import AdminError, NotFoundError, ValidationError
from lostfound.ledger import (
    ActionType,
    Actor,
    AuditLedger,
    LedgerEntry,
    LedgerFilters,
    LedgerPage,
    TargetType,
)
from lostfound.lifecycle import (
    DONATION_RECORDS_COLLECTION,
    ITEMS_COLLECTION,
    DonationRecord,
    Item,
    ItemStateMachine,
    ItemStatus,
    donation_record_ops,
    is_donation_status,
)
from lostfound.maintenance import (
    ArchiveCompactor,
    ArchiveResult,
    CancellationToken,
    EligibilitySweeper,
    SweepResult,
)
from lostfound.retry import RetryPolicy, retry_operation
from lostfound.runtime import WorkerPools
from lostfound.service.outcomes import MutationOutcome
from lostfound.store.protocols import BatchOp, DocumentStore


logger = structlog.get_logger()

T = TypeVar("T")

# Aggregates derived from items or donation records
AGGREGATE_KEYS_PATTERN: Final = (
    r"status_counts|donation_stats(_.*)?|item_analytics|dashboard_stats"
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _action_for(target: ItemStatus) -> tuple[ActionType, TargetType]:
    """Ledger action recorded when an item enters ``target``."""
    match target:
        case ItemStatus.REQUESTED:
            return ActionType.ITEM_REQUEST, TargetType.ITEM
        case ItemStatus.RETURNED:
            return ActionType.ITEM_CLAIM, TargetType.ITEM
        case ItemStatus.DONATION_PENDING | ItemStatus.ACTIVE:
            return ActionType.ITEM_STATUS_CHANGE, TargetType.ITEM
        case ItemStatus.DONATION_READY:
            return ActionType.DONATION_MARK_READY, TargetType.DONATION
        case ItemStatus.DONATED:
            return ActionType.DONATION_COMPLETE, TargetType.DONATION


class LifecycleService:
    """Entry point for callers.

    Construct one per process (see ``build_service``) and pass it by
    handle. Mutations persist first and audit second; an audit failure is
    reported in the returned ``MutationOutcome`` and never unwinds the
    mutation.

    Concurrent transitions on the same item are not serialized: the last
    write to the item document wins.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: DocumentStore,
        ledger: AuditLedger,
        cache: ResultCache,
        sweeper: EligibilitySweeper | None = None,
        compactor: ArchiveCompactor | None = None,
        pools: WorkerPools | None = None,
        state_machine: ItemStateMachine | None = None,
        retry_policy: RetryPolicy | None = None,
        donation_stats_ttl: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the service.

        Args:
            store: Document store.
            ledger: Audit ledger.
            cache: Shared aggregate cache.
            sweeper: Eligibility sweeper (built from store and ledger if omitted).
            compactor: Archive compactor (built from store and ledger if omitted).
            pools: Worker pools for ``submit_*`` calls.
            state_machine: Lifecycle state machine.
            retry_policy: Retry for store calls.
            donation_stats_ttl: Ttl for donation statistics (cache default if omitted).
            clock: Returns the current aware datetime.
            sleep: Sleep function used between retries.
        """
        self._store = store
        self._ledger = ledger
        self._cache = cache
        self._clock = clock
        self._sleep = sleep
        self._machine = state_machine or ItemStateMachine(clock=clock)
        self._retry_policy = retry_policy or RetryPolicy(max_retries=0)
        self._sweeper = sweeper or EligibilitySweeper(
            store,
            ledger,
            state_machine=self._machine,
            on_items_changed=self.invalidate_aggregates,
            clock=clock,
        )
        self._compactor = compactor or ArchiveCompactor(store, ledger, clock=clock)
        self._pools = pools
        self._donation_stats_ttl = donation_stats_ttl
        self._log = logger.bind(component="service")

    @property
    def store(self) -> DocumentStore:
        """Get the document store."""
        return self._store

    @property
    def ledger(self) -> AuditLedger:
        """Get the audit ledger."""
        return self._ledger

    @property
    def cache(self) -> ResultCache:
        """Get the aggregate cache."""
        return self._cache

    def _with_retry(self, op: Callable[[], T], operation: str) -> T:
        return retry_operation(op, self._retry_policy, sleep=self._sleep, operation=operation)

    def _audit(self, entry: LedgerEntry) -> tuple[LedgerEntry | None, AdminError | None]:
        """Append an audit entry, returning the failure instead of raising it."""
        try:
            return self._ledger.append(entry), None
        except AdminError as e:
            self._log.warning(
                "audit_write_failed",
                action_type=entry.action_type.value,
                target_id=entry.target_id,
                error_kind=e.kind.value,
            )
            return None, e

    # ===== Items =====

    def get_item(self, item_id: str) -> Item:
        """Get an item.

        Raises:
            NotFoundError: If no such item exists.
        """
        data = self._with_retry(
            lambda: self._store.get(ITEMS_COLLECTION, item_id), "get_item"
        )
        if data is None:
            raise NotFoundError("item", item_id)
        return Item.from_document(data)

    def get_donation_record(self, item_id: str) -> DonationRecord | None:
        """Get the donation record of an item, if it has one."""
        data = self._with_retry(
            lambda: self._store.get(DONATION_RECORDS_COLLECTION, item_id),
            "get_donation_record",
        )
        return None if data is None else DonationRecord.from_document(data)

    def report_item(  # noqa: PLR0913
        self,
        actor: Actor,
        name: str,
        category: str = "",
        location: str = "",
        item_id: str | None = None,
        reported_at: datetime | None = None,
    ) -> MutationOutcome[Item]:
        """Create an ACTIVE item.

        Raises:
            ValidationError: If the name is blank.
        """
        if not name.strip():
            raise ValidationError("Item name must not be blank", field="name")

        now = self._clock()
        item = Item(
            id=item_id or uuid.uuid4().hex,
            name=name,
            category=category,
            location=location,
            reported_at=reported_at or now,
            reported_by=actor.id,
            last_modified_by=actor.id,
            last_modified_at=now,
        )
        self._with_retry(
            lambda: self._store.set(ITEMS_COLLECTION, item.id, item.to_document()),
            "report_item",
        )
        self.invalidate_aggregates()
        self._log.info("item_reported", item_id=item.id, category=category)

        audit_entry, audit_error = self._audit(
            LedgerEntry(
                timestamp=now,
                actor_id=actor.id,
                actor_email=actor.email,
                actor_role=actor.role,
                action_type=ActionType.ITEM_REPORT,
                target_type=TargetType.ITEM,
                target_id=item.id,
                description=f"Reported item '{name}'",
                new_value=ItemStatus.ACTIVE.value,
                metadata={"category": category, "location": location},
            )
        )
        return MutationOutcome(item, audit_entry, audit_error)

    def transition_item_status(  # noqa: PLR0913
        self,
        item_id: str,
        new_status: ItemStatus,
        actor: Actor,
        reason: str = "",
        recipient: str | None = None,
        estimated_value: float | None = None,
    ) -> MutationOutcome[Item]:
        """Move an item to a new status and audit the change.

        The item and its donation record are written in one atomic batch.

        Args:
            item_id: Item to change.
            new_status: Target status.
            actor: Who performs the change.
            reason: Reason recorded in history and ledger.
            recipient: Donation recipient (DONATED only).
            estimated_value: Estimated value (DONATED only).

        Returns:
            The updated item and the audit outcome.

        Raises:
            NotFoundError: If the item does not exist.
            ValidationError: If the transition is rejected.
            AdminError: If persisting failed after retries.
        """
        item = self.get_item(item_id)
        now = self._clock()
        updated = self._machine.transition(item, new_status, actor.id, reason, now)

        existing = None
        if is_donation_status(item.status) or is_donation_status(new_status):
            existing = self.get_donation_record(item_id)
        ops = [
            BatchOp.set(ITEMS_COLLECTION, item_id, updated.to_document()),
            *donation_record_ops(
                item, updated, existing, actor.id, now, recipient, estimated_value
            ),
        ]
        self._with_retry(lambda: self._store.atomic_batch(ops), "transition_item_status")
        self.invalidate_aggregates()

        action_type, target_type = _action_for(new_status)
        metadata: dict[str, Any] = {"reason": reason}
        if recipient is not None:
            metadata["recipient"] = recipient
        if estimated_value is not None:
            metadata["estimated_value"] = estimated_value
        audit_entry, audit_error = self._audit(
            LedgerEntry(
                timestamp=now,
                actor_id=actor.id,
                actor_email=actor.email,
                actor_role=actor.role,
                action_type=action_type,
                target_type=target_type,
                target_id=item_id,
                description=(
                    f"Changed status of '{item.name or item_id}' from "
                    f"{item.status.display_name} to {new_status.display_name}"
                ),
                previous_value=item.status.value,
                new_value=new_status.value,
                metadata=metadata,
            )
        )
        return MutationOutcome(updated, audit_entry, audit_error)

    def mark_ready_for_donation(
        self, item_id: str, actor: Actor, reason: str = ""
    ) -> MutationOutcome[Item]:
        """Move a DONATION_PENDING item to DONATION_READY."""
        return self.transition_item_status(
            item_id, ItemStatus.DONATION_READY, actor, reason or "prepared for donation"
        )

    def mark_donated(
        self,
        item_id: str,
        actor: Actor,
        recipient: str,
        estimated_value: float = 0.0,
    ) -> MutationOutcome[Item]:
        """Record the donation of a DONATION_READY item.

        Raises:
            ValidationError: If the recipient is blank or value negative.
        """
        if not recipient.strip():
            raise ValidationError("Donation recipient must not be blank", field="recipient")
        if estimated_value < 0:
            raise ValidationError(
                "Estimated value must not be negative", field="estimated_value"
            )
        return self.transition_item_status(
            item_id,
            ItemStatus.DONATED,
            actor,
            f"donated to {recipient}",
            recipient=recipient,
            estimated_value=estimated_value,
        )

    # ===== Ledger =====

    def log_activity(self, entry: LedgerEntry) -> LedgerEntry:
        """Append a ledger entry.

        Raises:
            ValidationError: If the entry is incomplete.
            AdminError: If the write failed.
        """
        return self._ledger.append(entry)

    def query_activity_logs(
        self,
        filters: LedgerFilters | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> LedgerPage:
        """Query the live ledger, newest first."""
        return self._ledger.query(filters, cursor, limit)

    def search_activity_logs(self, text: str) -> list[LedgerEntry]:
        """Approximate search over recent ledger entries."""
        return self._ledger.search(text)

    def archivable_count(self) -> int:
        """Live ledger entries old enough to be archived."""
        return self._ledger.count_older_than(self._compactor.cutoff())

    # ===== Maintenance =====

    def run_eligibility_sweep(self, token: CancellationToken | None = None) -> SweepResult:
        """Flag aged ACTIVE items for donation."""
        return self._sweeper.run(token)

    def run_archive_compaction(
        self, token: CancellationToken | None = None
    ) -> ArchiveResult:
        """Relocate aged ledger entries into archive partitions."""
        return self._compactor.run(token)

    # ===== Aggregates =====

    def get_cached_aggregate(
        self, key: str, compute: Callable[[], T], ttl: float | None = None
    ) -> T:
        """Return a memoized aggregate, computing it once per ttl window."""
        return self._cache.get_or_put(key, compute, ttl)

    def get_status_counts(self) -> StatusCounts:
        """Item counts per status (cached)."""
        return self.get_cached_aggregate(
            STATUS_COUNTS_KEY, lambda: load_status_counts(self._store)
        )

    def get_donation_stats(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> DonationStats:
        """Donation statistics, optionally limited to a donation date range (cached)."""
        key = DONATION_STATS_KEY
        if start is not None or end is not None:
            start_part = f"{start:%Y-%m-%d}" if start else "min"
            end_part = f"{end:%Y-%m-%d}" if end else "max"
            key = f"{DONATION_STATS_KEY}_{start_part}_{end_part}"
        return self.get_cached_aggregate(
            key,
            lambda: load_donation_stats(self._store, start, end),
            self._donation_stats_ttl,
        )

    def invalidate_aggregates(self) -> int:
        """Drop every cached aggregate derived from items."""
        return self._cache.invalidate_pattern(AGGREGATE_KEYS_PATTERN)

    # ===== Asynchronous variants =====

    def _require_pools(self) -> WorkerPools:
        if self._pools is None:
            msg = "Worker pools are not configured for this service"
            raise ValidationError(msg, field="pools")
        return self._pools

    def submit_transition(
        self,
        item_id: str,
        new_status: ItemStatus,
        actor: Actor,
        reason: str = "",
    ) -> Future[MutationOutcome[Item]]:
        """Run ``transition_item_status`` on the I/O pool."""
        return self._require_pools().submit_io(
            self.transition_item_status, item_id, new_status, actor, reason
        )

    def submit_log_activity(self, entry: LedgerEntry) -> Future[LedgerEntry]:
        """Run ``log_activity`` on the I/O pool."""
        return self._require_pools().submit_io(self.log_activity, entry)

    def submit_query_activity_logs(
        self,
        filters: LedgerFilters | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> Future[LedgerPage]:
        """Run ``query_activity_logs`` on the I/O pool."""
        return self._require_pools().submit_io(
            self.query_activity_logs, filters, cursor, limit
        )

    def submit_eligibility_sweep(
        self, token: CancellationToken | None = None
    ) -> Future[SweepResult]:
        """Run the eligibility sweep on the compute pool."""
        return self._require_pools().submit_compute(self.run_eligibility_sweep, token)

    def submit_archive_compaction(
        self, token: CancellationToken | None = None
    ) -> Future[ArchiveResult]:
        """Run archive compaction on the compute pool."""
        return self._require_pools().submit_compute(self.run_archive_compaction, token)

    def submit_aggregate(
        self, key: str, compute: Callable[[], T], ttl: float | None = None
    ) -> Future[T]:
        """Compute or fetch a cached aggregate on the compute pool."""
        return self._require_pools().submit_compute(
            self.get_cached_aggregate, key, compute, ttl
        )

    def metrics(self) -> dict[str, dict[str, Any]]:
        """Snapshot of cache and ledger metrics."""
        stats = self._cache.stats()
        return {
            "cache": {**self._cache.metrics.to_dict(), "live_entries": stats.live_entries},
            "ledger": dict(self._ledger.metrics.to_dict()),
        }

    def close(self) -> None:
        """Shut down the worker pools."""
        if self._pools is not None:
            self._pools.shutdown()
