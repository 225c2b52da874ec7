"""
Bounded-concurrency worker pool.

``limit`` workers pull jobs from a shared asyncio queue, so at most ``limit``
jobs are in flight and the remaining ones start as capacity frees. A job
that raises records its error in its outcome and does not affect the
other jobs.

Usage:
    pool = BoundedPool(limit=2)
    outcomes = await pool.map(batches, answer_batch)
    for outcome in outcomes:
        if outcome.ok:
            ...
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class JobOutcome(Generic[T, R]):
    index: int
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedPool:
    """Runs async jobs with a fixed concurrency cap."""

    def __init__(self, limit: int = 2):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.in_flight = 0
        self.peak_in_flight = 0

    async def map(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> List[JobOutcome]:
        """Run ``worker`` over ``items``; outcomes come back in input order."""
        outcomes: List[Optional[JobOutcome]] = [None] * len(items)
        if not items:
            return []

        queue: "asyncio.Queue[int]" = asyncio.Queue()
        for index in range(len(items)):
            queue.put_nowait(index)

        async def _consume() -> None:
            while True:
                try:
                    index = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                item = items[index]
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                try:
                    value = await worker(item)
                    outcomes[index] = JobOutcome(index=index, item=item, value=value)
                except Exception as e:
                    logger.debug(f"Job {index} failed: {e}")
                    outcomes[index] = JobOutcome(index=index, item=item, error=e)
                finally:
                    self.in_flight -= 1
                    queue.task_done()

        workers = [asyncio.create_task(_consume()) for _ in range(min(self.limit, len(items)))]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            raise

        return [o for o in outcomes if o is not None]


async def run_bounded(
    items: Sequence[Any],
    worker: Callable[[Any], Awaitable[Any]],
    limit: int = 2,
) -> List[JobOutcome]:
    """Convenience wrapper around :class:`BoundedPool`."""
    return await BoundedPool(limit).map(items, worker)
