"""Full-scan aggregate computations."""

from collections import Counter
from collections.abc import Iterable
from datetime import datetime

from lostfound.analytics.models import DonationStats, StatusCounts
from lostfound.lifecycle.models import (
    DONATION_RECORDS_COLLECTION,
    ITEMS_COLLECTION,
    DonationRecord,
    DonationStatus,
    Item,
    ItemStatus,
)
from lostfound.store.protocols import DocumentStore, FieldFilter, FilterOp
from lostfound.store.scan import iter_documents


def compute_status_counts(items: Iterable[Item]) -> StatusCounts:
    """Count items per status."""
    counter = Counter(item.status for item in items)
    return StatusCounts(
        total=sum(counter.values()),
        by_status={status: counter.get(status, 0) for status in ItemStatus},
    )


def compute_donation_stats(
    records: Iterable[DonationRecord],
    returned_count: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> DonationStats:
    """Aggregate donation records.

    Args:
        records: All donation records.
        returned_count: Items returned to their owners.
        start: Only count donations at or after this time.
        end: Only count donations before this time.

    Returns:
        The computed statistics.
    """
    by_category: Counter[str] = Counter()
    by_month: Counter[str] = Counter()
    pending = ready = donated = 0
    total_value = 0.0
    age_days: list[float] = []

    for record in records:
        match record.status:
            case DonationStatus.PENDING:
                pending += 1
            case DonationStatus.READY:
                ready += 1
            case DonationStatus.DONATED:
                donated_at = record.donated_at
                if donated_at is None:
                    continue
                if start is not None and donated_at < start:
                    continue
                if end is not None and donated_at >= end:
                    continue
                donated += 1
                total_value += record.estimated_value
                by_category[record.category or "Uncategorized"] += 1
                by_month[f"{donated_at:%Y-%m}"] += 1
                age = donated_at - record.reported_at
                age_days.append(age.total_seconds() / 86400)

    disposed = donated + returned_count
    most_common = by_category.most_common(1)
    return DonationStats(
        total_donated=donated,
        total_value=round(total_value, 2),
        by_category=dict(by_category),
        by_month=dict(sorted(by_month.items())),
        pending=pending,
        ready=ready,
        average_item_age_days=round(sum(age_days) / len(age_days), 1) if age_days else 0.0,
        most_donated_category=most_common[0][0] if most_common else None,
        donation_rate=round(donated / disposed, 4) if disposed else 0.0,
    )


def load_status_counts(store: DocumentStore) -> StatusCounts:
    """Scan the items collection and count statuses."""
    return compute_status_counts(
        Item.from_document(doc.data) for doc in iter_documents(store, ITEMS_COLLECTION)
    )


def load_donation_stats(
    store: DocumentStore,
    start: datetime | None = None,
    end: datetime | None = None,
) -> DonationStats:
    """Scan donation records and items and compute donation statistics."""
    records = (
        DonationRecord.from_document(doc.data)
        for doc in iter_documents(store, DONATION_RECORDS_COLLECTION)
    )
    returned = store.count(
        ITEMS_COLLECTION, [FieldFilter("status", FilterOp.EQ, ItemStatus.RETURNED)]
    )
    return compute_donation_stats(records, returned, start, end)
