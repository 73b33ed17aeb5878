"""TTL cache for derived aggregates with single-flight computation."""

import re
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Final

import structlog

from lostfound.cache.metrics import CacheMetrics


logger = structlog.get_logger()

DEFAULT_TTL_SECONDS: Final[float] = 300.0

# Well-known aggregate keys
STATUS_COUNTS_KEY: Final = "status_counts"
DONATION_STATS_KEY: Final = "donation_stats"
ITEM_ANALYTICS_KEY: Final = "item_analytics"
DASHBOARD_STATS_KEY: Final = "dashboard_stats"


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with its insertion time and ttl (seconds)."""

    value: Any
    inserted_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        """Check whether the entry is still within its ttl."""
        return now - self.inserted_at < self.ttl


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache occupancy."""

    total_entries: int
    live_entries: int
    expired_entries: int
    in_flight: int


class ResultCache:
    """Thread-safe TTL cache shared across concurrent callers.

    ``get_or_put`` is single-flight: concurrent misses on the same key run
    the compute function once and every caller receives its result (or its
    exception). Invalidating a key while its computation is running
    prevents that result from being stored; other keys are unaffected.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        metrics: CacheMetrics | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl: Ttl in seconds used when none is given.
            clock: Monotonic clock returning seconds.
            metrics: Metrics recorder (a fresh one if omitted).
        """
        self._default_ttl = default_ttl
        self._clock = clock
        self._metrics = metrics or CacheMetrics()
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, Future[Any]] = {}
        # In-flight keys invalidated while their computation was running.
        self._stale: set[str] = set()
        self._lock = threading.Lock()
        self._log = logger.bind(component="cache")

    @property
    def metrics(self) -> CacheMetrics:
        """Get the cache metrics."""
        return self._metrics

    def _lookup(self, key: str, now: float) -> CacheEntry | None:
        """Return the live entry for key, evicting it if expired.

        Must be called while holding the lock.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_live(now):
            return entry
        del self._entries[key]
        self._metrics.evictions += 1
        return None

    def get(self, key: str) -> Any | None:
        """Get a cached value.

        Args:
            key: Cache key.

        Returns:
            The value, or None on miss or expiry.
        """
        with self._lock:
            entry = self._lookup(key, self._clock())
            if entry is None:
                self._metrics.misses += 1
                return None
            self._metrics.hits += 1
            return entry.value

    def contains(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters."""
        with self._lock:
            return self._lookup(key, self._clock()) is not None

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Ttl in seconds (default ttl if omitted).
        """
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=self._clock(),
                ttl=self._default_ttl if ttl is None else ttl,
            )

    def invalidate(self, key: str) -> bool:
        """Remove a single entry.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            if key in self._in_flight:
                self._stale.add(key)
            removed = self._entries.pop(key, None) is not None
            if removed:
                self._metrics.evictions += 1
        self._log.debug("cache_invalidated", key=key, removed=removed)
        return removed

    def invalidate_pattern(self, pattern: str) -> int:
        """Remove every entry whose key fully matches a regex.

        Args:
            pattern: Regular expression matched against the whole key.

        Returns:
            Number of entries removed.
        """
        regex = re.compile(pattern)
        with self._lock:
            self._stale.update(k for k in self._in_flight if regex.fullmatch(k))
            keys = [k for k in self._entries if regex.fullmatch(k)]
            for k in keys:
                del self._entries[k]
            self._metrics.evictions += len(keys)
        self._log.debug("cache_pattern_invalidated", pattern=pattern, removed=len(keys))
        return len(keys)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._stale.update(self._in_flight)
            self._metrics.evictions += len(self._entries)
            self._entries.clear()

    def cleanup_expired(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if not e.is_live(now)]
            for k in expired:
                del self._entries[k]
            self._metrics.evictions += len(expired)
        return len(expired)

    def stats(self) -> CacheStats:
        """Get a snapshot of cache occupancy."""
        with self._lock:
            now = self._clock()
            live = sum(1 for e in self._entries.values() if e.is_live(now))
            return CacheStats(
                total_entries=len(self._entries),
                live_entries=live,
                expired_entries=len(self._entries) - live,
                in_flight=len(self._in_flight),
            )

    def get_or_put(
        self,
        key: str,
        compute: Callable[[], Any],
        ttl: float | None = None,
    ) -> Any:
        """Return the cached value or compute, store and return it.

        Args:
            key: Cache key.
            compute: Zero-argument function producing the value.
            ttl: Ttl in seconds (default ttl if omitted).

        Returns:
            The cached or freshly computed value.

        Raises:
            Exception: Whatever ``compute`` raised; nothing is cached.
        """
        with self._lock:
            entry = self._lookup(key, self._clock())
            if entry is not None:
                self._metrics.hits += 1
                return entry.value
            self._metrics.misses += 1

            pending = self._in_flight.get(key)
            if pending is None:
                owner = True
                pending = Future()
                self._in_flight[key] = pending
            else:
                owner = False
                self._metrics.shared_waits += 1

        if not owner:
            return pending.result()

        try:
            self._metrics.computations += 1
            value = compute()
        except BaseException as e:
            with self._lock:
                del self._in_flight[key]
                self._stale.discard(key)
            pending.set_exception(e)
            self._log.warning("cache_compute_failed", key=key, error=str(e))
            raise

        with self._lock:
            del self._in_flight[key]
            if key in self._stale:
                self._stale.discard(key)
                self._log.debug("cache_store_skipped_after_invalidation", key=key)
            else:
                self._entries[key] = CacheEntry(
                    value=value,
                    inserted_at=self._clock(),
                    ttl=self._default_ttl if ttl is None else ttl,
                )
        pending.set_result(value)
        return value
