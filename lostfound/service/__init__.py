"""Lifecycle service facade."""

from lostfound.service.factory import build_service
from lostfound.service.lifecycle_service import AGGREGATE_KEYS_PATTERN, LifecycleService
from lostfound.service.outcomes import MutationOutcome


__all__ = ["AGGREGATE_KEYS_PATTERN", "LifecycleService", "MutationOutcome", "build_service"]
