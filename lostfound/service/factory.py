"""Process-start wiring for the lifecycle service."""

import structlog

from lostfound.cache import ResultCache
from lostfound.ledger import AuditLedger
from lostfound.maintenance import ArchiveCompactor, EligibilitySweeper, MaintenanceMetrics
from lostfound.notify import NotificationSender
from lostfound.runtime import WorkerPools
from lostfound.service.lifecycle_service import AGGREGATE_KEYS_PATTERN, LifecycleService
from lostfound.settings import AppSettings
from lostfound.store import SqliteDocumentStore


logger = structlog.get_logger()


def build_service(
    settings: AppSettings,
    notifier: NotificationSender | None = None,
    store: SqliteDocumentStore | None = None,
) -> LifecycleService:
    """Build a connected service from settings.

    Args:
        settings: Application settings.
        notifier: Optional sender for sweep notifications.
        store: Pre-built store (a SQLite store at ``settings.db_path`` if omitted).

    Returns:
        A ready service; call ``close`` and close the store when done.
    """
    store = store or SqliteDocumentStore(
        settings.db_path, max_batch_ops=settings.store_max_batch_ops
    )
    store.connect()

    policy = settings.retry_policy()
    ledger = AuditLedger(store, retry_policy=policy, search_window=settings.search_window)
    cache = ResultCache(default_ttl=settings.cache_ttl_seconds)
    metrics = MaintenanceMetrics()

    sweeper = EligibilitySweeper(
        store,
        ledger,
        threshold=settings.donation_age(),
        retry_policy=policy,
        notifier=notifier,
        on_items_changed=lambda: cache.invalidate_pattern(AGGREGATE_KEYS_PATTERN),
        metrics=metrics,
    )
    compactor = ArchiveCompactor(
        store,
        ledger,
        retention=settings.archive_retention(),
        batch_size=settings.archive_batch_size,
        retry_policy=policy,
        metrics=metrics,
    )
    pools = WorkerPools(
        io_workers=settings.io_workers, compute_workers=settings.compute_workers
    )

    logger.info(
        "service_built",
        component="service",
        db_path=str(settings.db_path),
        donation_age_days=settings.donation_age_days,
        archive_retention_days=settings.archive_retention_days,
    )
    return LifecycleService(
        store,
        ledger,
        cache,
        sweeper=sweeper,
        compactor=compactor,
        pools=pools,
        retry_policy=policy,
        donation_stats_ttl=settings.donation_stats_ttl_seconds,
    )
