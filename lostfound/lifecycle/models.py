"""Data models for item lifecycle tracking."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Final

from pydantic import BaseModel, ConfigDict, Field

from lostfound.store.codec import Timestamp


ITEMS_COLLECTION: Final = "items"
DONATION_RECORDS_COLLECTION: Final = "donation_records"


class ItemStatus(str, Enum):
    """Lifecycle status of a reported item.

    - ACTIVE: Reported and available to be claimed
    - REQUESTED: A claimant has asked for the item
    - RETURNED: Handed back to its owner (terminal)
    - DONATION_PENDING: Aged out and queued for donation
    - DONATION_READY: Checked by staff and ready to hand over
    - DONATED: Given to a recipient (terminal)
    """

    ACTIVE = "ACTIVE"
    REQUESTED = "REQUESTED"
    RETURNED = "RETURNED"
    DONATION_PENDING = "DONATION_PENDING"
    DONATION_READY = "DONATION_READY"
    DONATED = "DONATED"

    @property
    def display_name(self) -> str:
        """Human-readable status label."""
        return self.value.replace("_", " ").title()


DONATION_STATUSES: Final[frozenset[ItemStatus]] = frozenset(
    {ItemStatus.DONATION_PENDING, ItemStatus.DONATION_READY, ItemStatus.DONATED}
)


class StatusChange(BaseModel):
    """One applied status transition. Immutable once created."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    previous_status: ItemStatus
    new_status: ItemStatus
    actor_id: Annotated[str, Field(min_length=1)]
    timestamp: Timestamp
    reason: str = ""


class Item(BaseModel):
    """A reported lost or found item."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1, description="Item identifier")]
    name: str = ""
    category: str = ""
    location: str = ""
    status: ItemStatus = ItemStatus.ACTIVE
    status_history: tuple[StatusChange, ...] = ()
    reported_at: Timestamp = Field(description="When the item was reported")
    reported_by: str | None = None
    requested_by: str | None = None
    requested_at: Timestamp | None = None
    returned_at: Timestamp | None = None
    donation_eligible_at: Timestamp | None = None
    donated_at: Timestamp | None = None
    last_modified_by: str | None = None
    last_modified_at: Timestamp | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialize into stored form (timestamps as epoch milliseconds)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "Item":
        """Deserialize from stored form."""
        return cls.model_validate(data)


class DonationStatus(str, Enum):
    """Status of a donation record, mirroring the item's donation status."""

    PENDING = "PENDING"
    READY = "READY"
    DONATED = "DONATED"

    @classmethod
    def for_item_status(cls, status: ItemStatus) -> "DonationStatus | None":
        """Map an item status to the donation status it implies."""
        match status:
            case ItemStatus.DONATION_PENDING:
                return cls.PENDING
            case ItemStatus.DONATION_READY:
                return cls.READY
            case ItemStatus.DONATED:
                return cls.DONATED
            case ItemStatus.ACTIVE | ItemStatus.REQUESTED | ItemStatus.RETURNED:
                return None


class DonationRecord(BaseModel):
    """Donation projection of an item, keyed by item id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    item_id: Annotated[str, Field(min_length=1)]
    item_name: str = ""
    category: str = ""
    location: str = ""
    reported_at: Timestamp
    eligible_at: Timestamp
    status: DonationStatus = DonationStatus.PENDING
    marked_ready_by: str | None = None
    marked_ready_at: Timestamp | None = None
    donated_by: str | None = None
    donated_at: Timestamp | None = None
    donation_recipient: str | None = None
    estimated_value: Annotated[float, Field(ge=0.0)] = 0.0

    @classmethod
    def for_item(cls, item: Item, eligible_at: datetime) -> "DonationRecord":
        """Snapshot an item entering the donation pipeline."""
        return cls(
            item_id=item.id,
            item_name=item.name,
            category=item.category,
            location=item.location,
            reported_at=item.reported_at,
            eligible_at=eligible_at,
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize into stored form."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "DonationRecord":
        """Deserialize from stored form."""
        return cls.model_validate(data)
