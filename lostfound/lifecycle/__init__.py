"""Item lifecycle: models, state machine, eligibility and donation records."""

from lostfound.lifecycle.donations import (
    donation_record_for,
    donation_record_ops,
    is_donation_status,
)
from lostfound.lifecycle.eligibility import (
    DONATION_AGE_THRESHOLD,
    EligibilityAnomaly,
    EligibilityDecision,
    donation_eligibility,
)
from lostfound.lifecycle.models import (
    DONATION_RECORDS_COLLECTION,
    DONATION_STATUSES,
    ITEMS_COLLECTION,
    DonationRecord,
    DonationStatus,
    Item,
    ItemStatus,
    StatusChange,
)
from lostfound.lifecycle.state_machine import ItemStateMachine, transition


__all__ = [
    "DONATION_AGE_THRESHOLD",
    "DONATION_RECORDS_COLLECTION",
    "DONATION_STATUSES",
    "ITEMS_COLLECTION",
    "DonationRecord",
    "DonationStatus",
    "EligibilityAnomaly",
    "EligibilityDecision",
    "Item",
    "ItemStateMachine",
    "ItemStatus",
    "StatusChange",
    "donation_eligibility",
    "donation_record_for",
    "donation_record_ops",
    "is_donation_status",
    "transition",
]
