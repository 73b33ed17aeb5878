"""Metrics for the result cache."""

from dataclasses import dataclass


@dataclass
class CacheMetrics:
    """Counters for cache activity.

    Attributes:
        hits: Lookups served from a live entry.
        misses: Lookups that found nothing or an expired entry.
        computations: Calls to a compute function by ``get_or_put``.
        shared_waits: Callers that waited on another caller's computation.
        evictions: Entries removed by expiry or invalidation.
    """

    hits: int = 0
    misses: int = 0
    computations: int = 0
    shared_waits: int = 0
    evictions: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "computations": self.computations,
            "shared_waits": self.shared_waits,
            "evictions": self.evictions,
        }
