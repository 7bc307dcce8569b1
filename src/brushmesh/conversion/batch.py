"""
Data-parallel batch scheduling.

Each conversion phase is a job over an index range (faces, brush groups,
vertices). The executor splits the range into fixed-size batches, runs them
on a thread pool, and joins before returning, so the next phase only ever
sees completed output.

Jobs must write only to their own slot of pre-sized output buffers and read
only inputs that are final for the phase.
"""

from __future__ import annotations

import concurrent.futures
import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# Items per batch for each phase.
CULLING_BATCH_SIZE = 32
MESH_BATCH_SIZE = 128
COLLIDER_BATCH_SIZE = 64
SMOOTHING_BATCH_SIZE = 64


def batch_ranges(count: int, batch_size: int) -> List[range]:
    """Split range(count) into consecutive ranges of at most batch_size."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [range(start, min(start + batch_size, count))
            for start in range(0, count, batch_size)]


def _run_batch(job: Callable[[int], None], indices: range) -> None:
    for i in indices:
        job(i)


class BatchExecutor:
    """
    Runs index jobs in batches across a worker pool.

    With max_workers=1 every batch runs inline on the calling thread, which
    keeps tracebacks simple and is what tests use for determinism checks.
    Usable as a context manager; the pool is created lazily and released by
    shutdown().
    """

    def __init__(self, max_workers: Optional[int] = None):
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.max_workers = max_workers
        self._pool: Optional[concurrent.futures.ThreadPoolExecutor] = None

    @property
    def single_worker(self) -> bool:
        return self.max_workers == 1

    def _get_pool(self) -> concurrent.futures.ThreadPoolExecutor:
        if self._pool is None:
            self._pool = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="brushmesh",
            )
        return self._pool

    def run(self, job: Callable[[int], None], count: int, batch_size: int) -> None:
        """Run job(i) for every i in range(count), then join.

        Raises:
            Exception: The first exception raised by any batch, re-raised
                after every batch has finished.
        """
        if count <= 0:
            return
        batches = batch_ranges(count, batch_size)

        if self.single_worker or len(batches) == 1:
            for indices in batches:
                _run_batch(job, indices)
            return

        pool = self._get_pool()
        futures = [pool.submit(_run_batch, job, indices) for indices in batches]
        # Join: every batch finishes before any result is read.
        concurrent.futures.wait(futures)
        for future in futures:
            error = future.exception()
            if error is not None:
                logger.error("Batch job failed: %s", error)
                raise error

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self) -> "BatchExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


_default_executor: Optional[BatchExecutor] = None


def get_default_executor() -> BatchExecutor:
    """Shared executor for callers that don't bring their own."""
    global _default_executor
    if _default_executor is None:
        _default_executor = BatchExecutor()
    return _default_executor
