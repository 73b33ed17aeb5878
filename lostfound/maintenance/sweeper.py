"""Eligibility sweep: move aged ACTIVE items into the donation pipeline."""

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final

import pydantic
import structlog

from lostfound.errors import AdminError, NotificationError, classify
from lostfound.ledger import (
    SYSTEM_ACTOR_ID,
    ActionType,
    AuditLedger,
    LedgerEntry,
    TargetType,
)
from lostfound.lifecycle import (
    DONATION_AGE_THRESHOLD,
    ITEMS_COLLECTION,
    Item,
    ItemStateMachine,
    ItemStatus,
    donation_eligibility,
    donation_record_ops,
)
from lostfound.maintenance.cancellation import CancellationToken
from lostfound.maintenance.metrics import MaintenanceMetrics
from lostfound.maintenance.results import ItemAnomaly, ItemFailure, SweepResult
from lostfound.notify import NotificationSender
from lostfound.retry import RetryPolicy, retry_operation
from lostfound.store.protocols import BatchOp, Document, DocumentStore, FieldFilter, FilterOp


logger = structlog.get_logger()

SWEEP_REASON: Final = "age threshold reached"
ADMIN_TARGET: Final = "admins"
DEFAULT_SCAN_PAGE_SIZE: Final = 200


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EligibilitySweeper:
    """Scans ACTIVE items and flags those past the donation age threshold.

    Re-running is a no-op for items already flagged because they are no
    longer ACTIVE. One item failing never stops the scan; failures are
    collected in the result.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: DocumentStore,
        ledger: AuditLedger,
        state_machine: ItemStateMachine | None = None,
        threshold: timedelta = DONATION_AGE_THRESHOLD,
        page_size: int = DEFAULT_SCAN_PAGE_SIZE,
        retry_policy: RetryPolicy | None = None,
        notifier: NotificationSender | None = None,
        on_items_changed: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        metrics: MaintenanceMetrics | None = None,
    ) -> None:
        """Initialize the sweeper.

        Args:
            store: Document store holding items and donation records.
            ledger: Ledger receiving per-item and summary entries.
            state_machine: Lifecycle state machine.
            threshold: Minimum age for donation eligibility.
            page_size: Items read per store query.
            retry_policy: Retry for each item's batch commit.
            notifier: Optional sender used to tell admins about flagged items.
            on_items_changed: Called once when at least one item was flagged.
            clock: Returns the current aware datetime.
            sleep: Sleep function used between retries.
            metrics: Maintenance metrics recorder.
        """
        self._store = store
        self._ledger = ledger
        self._machine = state_machine or ItemStateMachine(clock=clock)
        self._threshold = threshold
        self._page_size = page_size
        self._retry_policy = retry_policy or RetryPolicy(max_retries=0)
        self._notifier = notifier
        self._on_items_changed = on_items_changed
        self._clock = clock
        self._sleep = sleep
        self._metrics = metrics or MaintenanceMetrics()
        self._log = logger.bind(component="sweeper")

    def run(self, token: CancellationToken | None = None) -> SweepResult:
        """Run one sweep.

        Cancellation is honoured between items, never in the middle of one.

        Args:
            token: Cancellation token checked before each item.

        Returns:
            Counts, per-item errors and anomalies for the run.
        """
        token = token or CancellationToken()
        now = self._clock()
        result = SweepResult(started_at=now)
        start_ns = time.perf_counter_ns()
        self._log.info("sweep_started", threshold_days=self._threshold.days)

        cursor: str | None = None
        active = [FieldFilter("status", FilterOp.EQ, ItemStatus.ACTIVE)]
        while True:
            page = retry_operation(
                lambda: self._store.query(
                    ITEMS_COLLECTION, filters=active, limit=self._page_size, cursor=cursor
                ),
                self._retry_policy,
                sleep=self._sleep,
                operation="sweep_scan",
            )
            for doc in page.documents:
                if token.is_cancelled:
                    result.cancelled = True
                    break
                self._process(doc, now, result)
            if result.cancelled or page.next_cursor is None:
                break
            cursor = page.next_cursor

        if result.cancelled:
            self._log.warning("sweep_cancelled", scanned=result.scanned_count)

        if result.flagged_count and self._on_items_changed is not None:
            self._on_items_changed()
        if result.flagged_count:
            self._notify_admins(result)
        self._write_summary(now, result)

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_sweep(result.flagged_count, len(result.errors), duration_ms)
        self._log.info(
            "sweep_complete",
            flagged=result.flagged_count,
            scanned=result.scanned_count,
            errors=len(result.errors),
            audit_errors=len(result.audit_errors),
            anomalies=len(result.anomalies),
            cancelled=result.cancelled,
            duration_ms=round(duration_ms, 2),
        )
        return result

    def _process(self, doc: Document, now: datetime, result: SweepResult) -> None:
        """Check one item and flag it when eligible."""
        result.scanned_count += 1
        try:
            item = Item.from_document(doc.data)
        except pydantic.ValidationError as e:
            result.errors.append(ItemFailure(doc.doc_id, classify(e)))
            self._log.warning("sweep_item_unreadable", item_id=doc.doc_id)
            return

        decision = donation_eligibility(item, now, self._threshold)
        if decision.anomaly is not None:
            result.anomalies.append(ItemAnomaly(item.id, decision.anomaly))
            self._log.warning(
                "sweep_item_anomaly",
                item_id=item.id,
                anomaly=decision.anomaly.value,
                reported_at=item.reported_at.isoformat(),
            )
            return
        if not decision.eligible:
            return

        try:
            flagged = self._machine.transition(
                item, ItemStatus.DONATION_PENDING, SYSTEM_ACTOR_ID, SWEEP_REASON, now
            )
            ops = [
                BatchOp.set(ITEMS_COLLECTION, item.id, flagged.to_document()),
                *donation_record_ops(item, flagged, None, SYSTEM_ACTOR_ID, now),
            ]
            retry_operation(
                lambda: self._store.atomic_batch(ops),
                self._retry_policy,
                sleep=self._sleep,
                operation="sweep_flag_item",
            )
        except Exception as e:  # noqa: BLE001
            error = classify(e)
            result.errors.append(ItemFailure(item.id, error))
            self._log.warning(
                "sweep_item_failed",
                item_id=item.id,
                error_kind=error.kind.value,
                error=error.message,
            )
            return

        result.flagged_count += 1
        result.flagged_ids.append(item.id)

        entry = LedgerEntry.system(
            ActionType.AUTO_DONATION_FLAG,
            TargetType.DONATION,
            f"Item '{item.name or item.id}' auto-flagged for donation "
            f"after {decision.age_days} days",
            timestamp=now,
            target_id=item.id,
            previous_value=ItemStatus.ACTIVE.value,
            new_value=ItemStatus.DONATION_PENDING.value,
            metadata={"age_days": decision.age_days, "category": item.category},
        )
        try:
            self._ledger.append(entry)
        except AdminError as e:
            result.audit_errors.append(ItemFailure(item.id, e))

    def _notify_admins(self, result: SweepResult) -> None:
        if self._notifier is None:
            return
        count = result.flagged_count
        try:
            outcome = self._notifier.send(
                [ADMIN_TARGET],
                "Items ready for donation",
                f"{count} item{'s' if count != 1 else ''} reached the donation "
                "age threshold and were flagged for donation.",
                {"flagged_count": str(count), "type": "donation_flag"},
            )
        except Exception as e:  # noqa: BLE001
            result.notification_error = NotificationError(str(e), cause=e)
        else:
            if not outcome.ok:
                result.notification_error = NotificationError(
                    "Notification not delivered",
                    details={"failed": ",".join(outcome.failed)},
                )
        if result.notification_error is not None:
            self._log.warning(
                "sweep_notification_failed", error=result.notification_error.message
            )

    def _write_summary(self, now: datetime, result: SweepResult) -> None:
        entry = LedgerEntry.system(
            ActionType.SYSTEM_MAINTENANCE,
            TargetType.SYSTEM,
            f"Eligibility sweep flagged {result.flagged_count} "
            f"of {result.scanned_count} active items",
            timestamp=now,
            target_id="eligibility_sweep",
            new_value=str(result.flagged_count),
            metadata={
                "flagged_count": result.flagged_count,
                "scanned_count": result.scanned_count,
                "error_count": len(result.errors),
                "anomaly_count": len(result.anomalies),
                "cancelled": result.cancelled,
            },
        )
        try:
            self._ledger.append(entry)
        except AdminError as e:
            result.summary_error = e
