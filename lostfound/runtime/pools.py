"""Separate worker pools for I/O-bound and CPU-bound work."""

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar

import structlog


logger = structlog.get_logger()

T = TypeVar("T")


class WorkerPools:
    """Owns the I/O and compute executors.

    Store reads and writes go to the I/O pool; sweeps and aggregate
    computation go to the compute pool, so a long scan never starves
    short store calls.
    """

    def __init__(self, io_workers: int = 4, compute_workers: int = 2) -> None:
        """Initialize the pools.

        Args:
            io_workers: Threads for store operations.
            compute_workers: Threads for sweeps and aggregation.
        """
        self._io = ThreadPoolExecutor(max_workers=io_workers, thread_name_prefix="io")
        self._compute = ThreadPoolExecutor(
            max_workers=compute_workers, thread_name_prefix="compute"
        )
        self._log = logger.bind(component="pools")
        self._log.debug(
            "worker_pools_started", io_workers=io_workers, compute_workers=compute_workers
        )

    def submit_io(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        """Run an I/O-bound call on the I/O pool."""
        return self._io.submit(fn, *args, **kwargs)

    def submit_compute(
        self, fn: Callable[..., T], *args: Any, **kwargs: Any
    ) -> Future[T]:
        """Run a CPU-bound call on the compute pool."""
        return self._compute.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        """Shut down both pools."""
        self._io.shutdown(wait=wait)
        self._compute.shutdown(wait=wait)
        self._log.debug("worker_pools_stopped")

    def __enter__(self) -> "WorkerPools":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.shutdown()
