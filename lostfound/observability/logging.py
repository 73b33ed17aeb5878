"""Structured logging configuration."""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Render JSON lines instead of console output.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=output.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=output, level=level)


def level_from_name(name: str) -> int:
    """Translate a level name such as ``"debug"`` into a logging level."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def bind_job_context(job_id: str, job_name: str | None = None) -> None:
    """Bind maintenance job context to all subsequent log messages."""
    context: dict[str, str] = {"job_id": job_id}
    if job_name:
        context["job_name"] = job_name
    structlog.contextvars.bind_contextvars(**context)


def clear_job_context() -> None:
    """Clear maintenance job context from log messages."""
    structlog.contextvars.unbind_contextvars("job_id", "job_name")
