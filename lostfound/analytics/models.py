"""Aggregate models served from the result cache."""

from pydantic import BaseModel, ConfigDict, Field

from lostfound.lifecycle.models import ItemStatus


class StatusCounts(BaseModel):
    """Number of items in each lifecycle status."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    by_status: dict[ItemStatus, int] = Field(default_factory=dict)

    def count(self, status: ItemStatus) -> int:
        """Items currently in ``status``."""
        return self.by_status.get(status, 0)


class DonationStats(BaseModel):
    """Donation pipeline statistics.

    Attributes:
        total_donated: Items donated.
        total_value: Sum of estimated values of donated items.
        by_category: Donated items per category.
        by_month: Donated items per ``YYYY-MM`` of donation.
        pending: Records waiting to be prepared.
        ready: Records ready to hand over.
        average_item_age_days: Mean days from report to donation.
        most_donated_category: Category with most donations, if any.
        donation_rate: Donated share of all disposed (returned or donated) items.
    """

    model_config = ConfigDict(frozen=True)

    total_donated: int = 0
    total_value: float = 0.0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_month: dict[str, int] = Field(default_factory=dict)
    pending: int = 0
    ready: int = 0
    average_item_age_days: float = 0.0
    most_donated_category: str | None = None
    donation_rate: float = 0.0
