"""Append-only audit ledger."""

from lostfound.ledger.ledger import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SEARCH_WINDOW,
    AuditLedger,
    archive_partition_name,
)
from lostfound.ledger.metrics import LedgerMetrics
from lostfound.ledger.models import (
    ARCHIVE_PREFIX,
    LEDGER_COLLECTION,
    SYSTEM_ACTOR_EMAIL,
    SYSTEM_ACTOR_ID,
    ActionType,
    Actor,
    ActorRole,
    LedgerEntry,
    LedgerFilters,
    LedgerPage,
    TargetType,
)


__all__ = [
    "ARCHIVE_PREFIX",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_SEARCH_WINDOW",
    "LEDGER_COLLECTION",
    "SYSTEM_ACTOR_EMAIL",
    "SYSTEM_ACTOR_ID",
    "ActionType",
    "Actor",
    "ActorRole",
    "AuditLedger",
    "LedgerEntry",
    "LedgerFilters",
    "LedgerMetrics",
    "LedgerPage",
    "TargetType",
]
