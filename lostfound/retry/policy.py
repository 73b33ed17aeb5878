"""Exponential-backoff retry driven by the error taxonomy."""

import time
from collections.abc import Callable
from typing import Annotated, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from lostfound.errors import AdminError, classify


logger = structlog.get_logger()

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Uses exponential backoff:
    delay = min(initial_delay_ms * factor ^ attempt, max_delay_ms)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    initial_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 10000
    factor: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0

    @classmethod
    def for_store(cls) -> "RetryPolicy":
        """Shorter delays for document store round-trips."""
        return cls(initial_delay_ms=500, max_delay_ms=5000)

    @classmethod
    def for_network(cls) -> "RetryPolicy":
        """Default delays for remote calls."""
        return cls(initial_delay_ms=1000, max_delay_ms=10000)

    def should_retry(self, error: AdminError, attempt: int) -> bool:
        """Determine if a failed attempt should be retried.

        Args:
            error: The classified error.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if another attempt is allowed.
        """
        if attempt >= self.max_retries:
            return False
        return error.is_retryable

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Number of the attempt that just failed (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.initial_delay_ms * (self.factor**attempt)
        return int(min(delay, self.max_delay_ms))


def retry_operation(
    op: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    operation: str = "operation",
) -> T:
    """Run ``op`` with classification and exponential backoff.

    Non-retryable failures are raised on the first attempt. Retryable
    failures are retried up to ``policy.max_retries`` times; once exhausted
    the last classified error is raised.

    Args:
        op: Zero-argument callable to run.
        policy: Retry configuration (defaults to ``RetryPolicy()``).
        sleep: Sleep function taking seconds, injectable for tests.
        operation: Name used in log events.

    Returns:
        The value returned by ``op``.

    Raises:
        AdminError: The classified failure of the final attempt.
    """
    policy = policy or RetryPolicy()
    log = logger.bind(component="retry", operation=operation)

    for attempt in range(policy.max_retries + 1):
        if attempt > 0:
            delay_ms = policy.get_delay_ms(attempt - 1)
            log.debug(
                "retry_attempt",
                attempt=attempt,
                delay_ms=delay_ms,
                max_retries=policy.max_retries,
            )
            sleep(delay_ms / 1000.0)

        try:
            return op()
        except Exception as e:
            error = classify(e)
            if not policy.should_retry(error, attempt):
                log.warning(
                    "operation_failed",
                    attempt=attempt,
                    error_kind=error.kind.value,
                    retryable=error.is_retryable,
                    error=error.message,
                )
                if error is e:
                    raise
                raise error from e

            log.info(
                "operation_attempt_failed",
                attempt=attempt,
                error_kind=error.kind.value,
                error=error.message,
            )

    # Unreachable: the final attempt either returns or raises above.
    msg = "retry loop exited without result"
    raise RuntimeError(msg)
