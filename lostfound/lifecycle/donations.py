"""Keep donation records in step with item status."""

from datetime import datetime

from lostfound.lifecycle.models import (
    DONATION_RECORDS_COLLECTION,
    DONATION_STATUSES,
    DonationRecord,
    DonationStatus,
    Item,
    ItemStatus,
)
from lostfound.store.protocols import BatchOp


def donation_record_for(
    before: Item,
    after: Item,
    existing: DonationRecord | None,
    actor_id: str,
    now: datetime,
    recipient: str | None = None,
    estimated_value: float | None = None,
) -> DonationRecord | None:
    """Compute the donation record implied by a transition.

    Args:
        before: Item before the transition.
        after: Item after the transition.
        existing: Currently stored record, if any.
        actor_id: Who performed the transition.
        now: Transition time.
        recipient: Donation recipient (DONATED only).
        estimated_value: Estimated value (DONATED only).

    Returns:
        The record to store, or None when no record should exist.
    """
    status = DonationStatus.for_item_status(after.status)
    if status is None:
        return None

    if existing is None or before.status not in DONATION_STATUSES:
        record = DonationRecord.for_item(after, eligible_at=now)
    else:
        record = existing

    match status:
        case DonationStatus.PENDING:
            return record
        case DonationStatus.READY:
            return record.model_copy(
                update={
                    "status": status,
                    "marked_ready_by": actor_id,
                    "marked_ready_at": now,
                }
            )
        case DonationStatus.DONATED:
            return record.model_copy(
                update={
                    "status": status,
                    "donated_by": actor_id,
                    "donated_at": now,
                    "donation_recipient": recipient,
                    "estimated_value": estimated_value
                    if estimated_value is not None
                    else record.estimated_value,
                }
            )


def donation_record_ops(
    before: Item,
    after: Item,
    existing: DonationRecord | None,
    actor_id: str,
    now: datetime,
    recipient: str | None = None,
    estimated_value: float | None = None,
) -> list[BatchOp]:
    """Batch operations that keep the donation record consistent.

    A record exists exactly while the item is in the donation sub-graph:
    it is created on entering DONATION_PENDING, updated on DONATION_READY
    and DONATED, and deleted when the item returns to ACTIVE.
    """
    record = donation_record_for(
        before, after, existing, actor_id, now, recipient, estimated_value
    )
    if record is not None:
        return [
            BatchOp.set(DONATION_RECORDS_COLLECTION, after.id, record.to_document())
        ]
    if before.status in DONATION_STATUSES or existing is not None:
        return [BatchOp.delete(DONATION_RECORDS_COLLECTION, after.id)]
    return []


def is_donation_status(status: ItemStatus) -> bool:
    """Check whether a status belongs to the donation sub-graph."""
    return status in DONATION_STATUSES
