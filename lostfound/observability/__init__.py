"""Logging setup and context binding."""

from lostfound.observability.logging import (
    bind_job_context,
    clear_job_context,
    configure_logging,
    level_from_name,
)


__all__ = [
    "bind_job_context",
    "clear_job_context",
    "configure_logging",
    "level_from_name",
]
