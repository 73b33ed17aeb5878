"""Retry policy and backoff wrapper."""

from lostfound.retry.policy import RetryPolicy, retry_operation


__all__ = ["RetryPolicy", "retry_operation"]
