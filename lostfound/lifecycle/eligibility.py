"""Donation eligibility rule for aged items."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Final

from lostfound.lifecycle.models import Item, ItemStatus


DONATION_AGE_THRESHOLD: Final = timedelta(days=365)

_EPOCH: Final = datetime(1970, 1, 1, tzinfo=UTC)


class EligibilityAnomaly(str, Enum):
    """Reasons an item's age could not be trusted."""

    FUTURE_TIMESTAMP = "FUTURE_TIMESTAMP"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of the eligibility check for one item.

    Attributes:
        eligible: Whether the item should enter the donation pipeline.
        age_days: Whole days since report, None when the age is untrusted.
        anomaly: Set when the report timestamp is unusable.
    """

    eligible: bool
    age_days: int | None = None
    anomaly: EligibilityAnomaly | None = None


def donation_eligibility(
    item: Item,
    now: datetime,
    threshold: timedelta = DONATION_AGE_THRESHOLD,
) -> EligibilityDecision:
    """Decide whether an item is eligible for donation.

    Only ACTIVE items qualify. Fails closed: a report timestamp in the
    future or at/before the epoch makes the item ineligible and is returned
    as an anomaly rather than raised.

    Args:
        item: Item to check.
        now: Current time.
        threshold: Minimum age since report.

    Returns:
        The eligibility decision.
    """
    reported_at = item.reported_at
    if reported_at <= _EPOCH:
        return EligibilityDecision(
            eligible=False, anomaly=EligibilityAnomaly.INVALID_TIMESTAMP
        )
    if reported_at > now:
        return EligibilityDecision(
            eligible=False, anomaly=EligibilityAnomaly.FUTURE_TIMESTAMP
        )

    age = now - reported_at
    return EligibilityDecision(
        eligible=item.status == ItemStatus.ACTIVE and age >= threshold,
        age_days=age.days,
    )
