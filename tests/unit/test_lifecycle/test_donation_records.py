"""Unit tests for donation record bookkeeping."""

from datetime import timedelta

import pytest

from lostfound.lifecycle import (
    DONATION_RECORDS_COLLECTION,
    DonationRecord,
    DonationStatus,
    ItemStateMachine,
    ItemStatus,
    donation_record_ops,
    is_donation_status,
)
from lostfound.store import BatchOpKind
from tests.helpers.factories import make_item
from tests.helpers.time import FIXED_NOW, FakeClock


LATER = FIXED_NOW + timedelta(days=5)


@pytest.fixture
def machine() -> ItemStateMachine:
    """State machine on a fixed clock."""
    return ItemStateMachine(clock=FakeClock())


class TestDonationRecordOps:
    """Tests for donation_record_ops()."""

    def test_entering_pipeline_creates_record(self, machine: ItemStateMachine) -> None:
        """Test DONATION_PENDING creates a PENDING record."""
        before = make_item(age_days=400, category="Clothing")
        after = machine.transition(before, ItemStatus.DONATION_PENDING, "system")

        ops = donation_record_ops(before, after, None, "system", FIXED_NOW)

        assert len(ops) == 1
        assert ops[0].kind == BatchOpKind.SET
        assert ops[0].collection == DONATION_RECORDS_COLLECTION
        assert ops[0].doc_id == before.id
        record = DonationRecord.from_document(ops[0].data or {})
        assert record.status == DonationStatus.PENDING
        assert record.eligible_at == FIXED_NOW
        assert record.category == "Clothing"
        assert record.reported_at == before.reported_at

    def test_mark_ready_updates_existing(self, machine: ItemStateMachine) -> None:
        """Test DONATION_READY updates the stored record."""
        item = make_item(age_days=400)
        pending = machine.transition(item, ItemStatus.DONATION_PENDING, "system")
        existing = DonationRecord.for_item(pending, eligible_at=FIXED_NOW)
        ready = machine.transition(pending, ItemStatus.DONATION_READY, "admin-1", now=LATER)

        ops = donation_record_ops(pending, ready, existing, "admin-1", LATER)

        record = DonationRecord.from_document(ops[0].data or {})
        assert record.status == DonationStatus.READY
        assert record.marked_ready_by == "admin-1"
        assert record.marked_ready_at == LATER
        assert record.eligible_at == FIXED_NOW

    def test_donated_records_recipient(self, machine: ItemStateMachine) -> None:
        """Test DONATED records recipient and value."""
        ready = make_item(status=ItemStatus.DONATION_READY)
        existing = DonationRecord.for_item(ready, eligible_at=FIXED_NOW).model_copy(
            update={"status": DonationStatus.READY}
        )
        donated = machine.transition(ready, ItemStatus.DONATED, "admin-1", now=LATER)

        ops = donation_record_ops(
            ready, donated, existing, "admin-1", LATER, "Red Cross", 12.5
        )

        record = DonationRecord.from_document(ops[0].data or {})
        assert record.status == DonationStatus.DONATED
        assert record.donated_by == "admin-1"
        assert record.donated_at == LATER
        assert record.donation_recipient == "Red Cross"
        assert record.estimated_value == 12.5

    def test_missing_record_recreated(self, machine: ItemStateMachine) -> None:
        """Test a lost record is rebuilt from the item."""
        ready = make_item(status=ItemStatus.DONATION_READY)
        donated = machine.transition(ready, ItemStatus.DONATED, "admin-1")

        ops = donation_record_ops(ready, donated, None, "admin-1", FIXED_NOW)

        assert DonationRecord.from_document(ops[0].data or {}).status == (
            DonationStatus.DONATED
        )

    def test_leaving_pipeline_deletes_record(self, machine: ItemStateMachine) -> None:
        """Test returning to ACTIVE deletes the record."""
        pending = make_item(status=ItemStatus.DONATION_PENDING)
        existing = DonationRecord.for_item(pending, eligible_at=FIXED_NOW)
        active = machine.transition(pending, ItemStatus.ACTIVE, "admin-1")

        ops = donation_record_ops(pending, active, existing, "admin-1", FIXED_NOW)

        assert [(op.kind, op.doc_id) for op in ops] == [(BatchOpKind.DELETE, pending.id)]

    def test_outside_pipeline_no_ops(self, machine: ItemStateMachine) -> None:
        """Test claims never touch donation records."""
        before = make_item()
        after = machine.transition(before, ItemStatus.REQUESTED, "user-7")
        assert donation_record_ops(before, after, None, "user-7", FIXED_NOW) == []

    def test_is_donation_status(self) -> None:
        """Test the donation sub-graph membership."""
        assert is_donation_status(ItemStatus.DONATION_READY)
        assert not is_donation_status(ItemStatus.REQUESTED)

    def test_for_item_status(self) -> None:
        """Test item status to donation status mapping."""
        assert DonationStatus.for_item_status(ItemStatus.DONATED) == DonationStatus.DONATED
        assert DonationStatus.for_item_status(ItemStatus.RETURNED) is None
