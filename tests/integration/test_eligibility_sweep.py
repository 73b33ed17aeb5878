"""Integration tests for the eligibility sweep."""

import sqlite3
import tempfile
from collections.abc import Generator, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from lostfound.errors import ErrorKind, StoreError
from lostfound.ledger import (
    SYSTEM_ACTOR_ID,
    ActionType,
    AuditLedger,
    LedgerFilters,
    TargetType,
)
from lostfound.lifecycle import (
    DONATION_RECORDS_COLLECTION,
    ITEMS_COLLECTION,
    DonationRecord,
    DonationStatus,
    EligibilityAnomaly,
    Item,
    ItemStatus,
)
from lostfound.maintenance import (
    CancellationToken,
    EligibilitySweeper,
    MaintenanceMetrics,
)
from lostfound.notify import DeliveryOutcome, RecordingNotificationSender
from lostfound.store import BatchOp, SqliteDocumentStore, StoreMetrics
from tests.helpers.factories import make_item
from tests.helpers.time import FIXED_NOW, FakeClock


class FailingBatchStore(SqliteDocumentStore):
    """Store whose batches fail for selected document ids."""

    def __init__(self, *args: Any, fail_ids: Sequence[str] = (), **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fail_ids = set(fail_ids)

    def atomic_batch(self, ops: Sequence[BatchOp]) -> None:
        if any(op.doc_id in self.fail_ids for op in ops):
            raise sqlite3.OperationalError("database is locked")
        super().atomic_batch(ops)


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[SqliteDocumentStore]:
    """Create a connected store."""
    StoreMetrics.reset()
    with SqliteDocumentStore(temp_db_path) as s:
        yield s


@pytest.fixture
def ledger(store: SqliteDocumentStore) -> AuditLedger:
    """Create a ledger over the store."""
    return AuditLedger(store)


def _put(store: SqliteDocumentStore, item: Item) -> None:
    store.set(ITEMS_COLLECTION, item.id, item.to_document())


def _load(store: SqliteDocumentStore, item_id: str) -> Item:
    return Item.from_document(store.get(ITEMS_COLLECTION, item_id) or {})


def _flag_entries(ledger: AuditLedger) -> list[Any]:
    filters = LedgerFilters(action_type=ActionType.AUTO_DONATION_FLAG)
    return ledger.query(filters).entries


class TestSweep:
    """Tests for EligibilitySweeper.run()."""

    def test_flags_aged_item(self, store: SqliteDocumentStore, ledger: AuditLedger) -> None:
        """Test an item past the threshold moves to DONATION_PENDING."""
        _put(store, make_item("old", age_days=366, category="Clothing"))
        sweeper = EligibilitySweeper(store, ledger, clock=FakeClock())

        result = sweeper.run()

        assert result.flagged_count == 1
        assert result.flagged_ids == ["old"]
        assert result.success

        item = _load(store, "old")
        assert item.status == ItemStatus.DONATION_PENDING
        assert item.donation_eligible_at == FIXED_NOW
        change = item.status_history[-1]
        assert change.actor_id == SYSTEM_ACTOR_ID
        assert change.reason == "age threshold reached"

        record = DonationRecord.from_document(
            store.get(DONATION_RECORDS_COLLECTION, "old") or {}
        )
        assert record.status == DonationStatus.PENDING
        assert record.eligible_at == FIXED_NOW
        assert record.category == "Clothing"

        entries = _flag_entries(ledger)
        assert len(entries) == 1
        assert entries[0].target_id == "old"
        assert entries[0].target_type == TargetType.DONATION
        assert entries[0].previous_value == "ACTIVE"
        assert entries[0].new_value == "DONATION_PENDING"
        assert entries[0].metadata["age_days"] == 366

    def test_leaves_other_items(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test young items and non-ACTIVE items are untouched."""
        _put(store, make_item("young", age_days=30))
        _put(store, make_item("claimed", status=ItemStatus.REQUESTED, age_days=800))

        result = EligibilitySweeper(store, ledger, clock=FakeClock()).run()

        assert result.flagged_count == 0
        assert result.scanned_count == 1
        assert _load(store, "young").status == ItemStatus.ACTIVE
        assert _load(store, "claimed").status == ItemStatus.REQUESTED
        assert store.get(DONATION_RECORDS_COLLECTION, "young") is None

    def test_idempotent(self, store: SqliteDocumentStore, ledger: AuditLedger) -> None:
        """Test a second run flags nothing new."""
        _put(store, make_item("old", age_days=400))
        sweeper = EligibilitySweeper(store, ledger, clock=FakeClock())

        sweeper.run()
        second = sweeper.run()

        assert second.flagged_count == 0
        assert len(_flag_entries(ledger)) == 1
        assert len(_load(store, "old").status_history) == 1

    def test_paginates_while_flagging(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test every eligible item is flagged across pages."""
        for i in range(7):
            _put(store, make_item(f"item-{i}", age_days=400 + i))

        result = EligibilitySweeper(store, ledger, page_size=2, clock=FakeClock()).run()

        assert result.flagged_count == 7
        assert result.scanned_count == 7

    def test_anomalies_recorded(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test future report times are skipped as anomalies."""
        _put(store, make_item("future", age_days=-10))

        result = EligibilitySweeper(store, ledger, clock=FakeClock()).run()

        assert result.flagged_count == 0
        assert result.errors == []
        assert [(a.item_id, a.anomaly) for a in result.anomalies] == [
            ("future", EligibilityAnomaly.FUTURE_TIMESTAMP)
        ]
        assert _load(store, "future").status == ItemStatus.ACTIVE

    def test_summary_entry(self, store: SqliteDocumentStore, ledger: AuditLedger) -> None:
        """Test each run writes one maintenance summary."""
        _put(store, make_item("old", age_days=400))
        _put(store, make_item("young", age_days=1))

        EligibilitySweeper(store, ledger, clock=FakeClock()).run()

        summaries = ledger.query(
            LedgerFilters(action_type=ActionType.SYSTEM_MAINTENANCE)
        ).entries
        assert len(summaries) == 1
        assert summaries[0].metadata["flagged_count"] == 1
        assert summaries[0].metadata["scanned_count"] == 2


class TestSweepFailures:
    """Tests for partial failure handling."""

    def test_item_failure_does_not_stop_sweep(self, temp_db_path: Path) -> None:
        """Test one failing item is recorded and the rest are flagged."""
        StoreMetrics.reset()
        with FailingBatchStore(temp_db_path, fail_ids=["b"]) as store:
            ledger = AuditLedger(store)
            for item_id in ("a", "b", "c"):
                _put(store, make_item(item_id, age_days=400))

            metrics = MaintenanceMetrics()
            result = EligibilitySweeper(
                store, ledger, clock=FakeClock(), metrics=metrics
            ).run()

            assert result.flagged_ids == ["a", "c"]
            assert [f.target_id for f in result.errors] == ["b"]
            assert result.errors[0].error.kind == ErrorKind.STORE
            assert not result.success
            assert _load(store, "b").status == ItemStatus.ACTIVE
            assert store.get(DONATION_RECORDS_COLLECTION, "b") is None
            assert metrics.items_flagged_total == 2
            assert metrics.sweep_item_errors_total == 1

    def test_audit_failure_keeps_transition(self, store: SqliteDocumentStore) -> None:
        """Test a failed ledger write is reported but the item stays flagged."""
        ledger = MagicMock(spec=AuditLedger)
        ledger.append.side_effect = StoreError("ledger unavailable")
        _put(store, make_item("old", age_days=400))

        result = EligibilitySweeper(store, ledger, clock=FakeClock()).run()

        assert result.flagged_count == 1
        assert [f.target_id for f in result.audit_errors] == ["old"]
        assert result.summary_error is not None
        assert _load(store, "old").status == ItemStatus.DONATION_PENDING

    def test_cancelled_before_start(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test a cancelled token stops before the first item."""
        _put(store, make_item("old", age_days=400))
        token = CancellationToken()
        token.cancel()

        result = EligibilitySweeper(store, ledger, clock=FakeClock()).run(token)

        assert result.cancelled
        assert result.flagged_count == 0
        assert _load(store, "old").status == ItemStatus.ACTIVE


class TestSweepNotifications:
    """Tests for admin notification and cache invalidation hooks."""

    def test_admins_notified_once(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test one notification covers every flagged item."""
        _put(store, make_item("a", age_days=400))
        _put(store, make_item("b", age_days=500))
        notifier = RecordingNotificationSender()
        changed: list[bool] = []

        EligibilitySweeper(
            store,
            ledger,
            notifier=notifier,
            on_items_changed=lambda: changed.append(True),
            clock=FakeClock(),
        ).run()

        assert len(notifier.sent) == 1
        targets, _, body, metadata = notifier.sent[0]
        assert targets == ["admins"]
        assert "2 items" in body
        assert metadata["flagged_count"] == "2"
        assert changed == [True]

    def test_no_notification_when_nothing_flagged(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test quiet runs send nothing."""
        notifier = RecordingNotificationSender()
        EligibilitySweeper(store, ledger, notifier=notifier, clock=FakeClock()).run()
        assert notifier.sent == []

    def test_notification_failure_reported(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test sender failures are reported without failing the sweep."""
        _put(store, make_item("a", age_days=400))
        notifier = MagicMock()
        notifier.send.side_effect = ConnectionError("push gateway down")

        result = EligibilitySweeper(store, ledger, notifier=notifier, clock=FakeClock()).run()

        assert result.flagged_count == 1
        assert result.notification_error is not None
        assert result.notification_error.kind == ErrorKind.NOTIFICATION

    def test_undelivered_notification_reported(
        self, store: SqliteDocumentStore, ledger: AuditLedger
    ) -> None:
        """Test partial delivery is reported."""
        _put(store, make_item("a", age_days=400))
        notifier = MagicMock()
        notifier.send.return_value = DeliveryOutcome(delivered=0, failed=("admins",))

        result = EligibilitySweeper(store, ledger, notifier=notifier, clock=FakeClock()).run()

        assert result.notification_error is not None
