"""Cached aggregate statistics."""

from lostfound.analytics.aggregates import (
    compute_donation_stats,
    compute_status_counts,
    load_donation_stats,
    load_status_counts,
)
from lostfound.analytics.models import DonationStats, StatusCounts


__all__ = [
    "DonationStats",
    "StatusCounts",
    "compute_donation_stats",
    "compute_status_counts",
    "load_donation_stats",
    "load_status_counts",
]
