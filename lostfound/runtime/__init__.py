"""Worker pools."""

from lostfound.runtime.pools import WorkerPools


__all__ = ["WorkerPools"]
