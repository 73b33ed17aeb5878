"""Shared TTL result cache."""

from lostfound.cache.metrics import CacheMetrics
from lostfound.cache.result_cache import (
    DASHBOARD_STATS_KEY,
    DEFAULT_TTL_SECONDS,
    DONATION_STATS_KEY,
    ITEM_ANALYTICS_KEY,
    STATUS_COUNTS_KEY,
    CacheEntry,
    CacheStats,
    ResultCache,
)


__all__ = [
    "DASHBOARD_STATS_KEY",
    "DEFAULT_TTL_SECONDS",
    "DONATION_STATS_KEY",
    "ITEM_ANALYTICS_KEY",
    "STATUS_COUNTS_KEY",
    "CacheEntry",
    "CacheMetrics",
    "CacheStats",
    "ResultCache",
]
