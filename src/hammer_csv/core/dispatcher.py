"""Parallel row dispatcher.

Splits an ordered row sequence into `thread_count` contiguous chunks and runs
one asyncio worker per chunk. Each worker walks its chunk in order, drops
comment rows, and awaits the per-row callback. Plain (non-coroutine)
callbacks run in a thread through asyncio.to_thread. The dispatcher knows
nothing about CSV columns or remote entities.

Chunking:
--------
Chunks are windows of ceil(total / thread_count) rows; trailing chunks may be
short or empty. Exactly `thread_count` workers run even when some chunks are
empty. With 10 rows and 3 workers the windows are [0,4), [4,8), [8,10).

Ordering:
--------
Row order is preserved within a chunk. Nothing is guaranteed across chunks.

Failure handling:
----------------
Every callback exception is recorded as a RowFailure with its row index.
What the failing worker does next depends on FailurePolicy:
- ABORT_CHUNK (default): stop this worker's remaining rows
- CONTINUE: move on to the next row of the chunk
- FAIL_FAST: signal cancellation; every worker stops before its next row
After all workers have joined, any recorded failure is raised as a single
DispatchError.
"""

import asyncio
import inspect
import math
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from ..config import FailurePolicy
from ..constants import COMMENT_MARKER
from ..observability.logger import LogContext
from ..observability.metrics import get_global_collector
from ..utils.exceptions import DispatchError, DispatcherConfigError, RowFailure

logger = structlog.get_logger(__name__)

# Returns None or an awaitable
RowCallback = Callable[[Any], Any]


class DispatchState(str, Enum):
    """Lifecycle of a dispatcher. There are no intermediate states."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    JOINED = "joined"


@dataclass
class DispatchResult:
    """
    Outcome counters for one dispatch.

    Attributes:
        total_rows: Rows handed to the dispatcher
        thread_count: Workers launched
        processed: Rows whose callback completed
        skipped: Comment rows dropped
        not_attempted: Rows left unvisited after a worker stopped early
        failures: Rows whose callback raised
        duration_seconds: Wall time from launch to join
    """

    total_rows: int
    thread_count: int
    processed: int = 0
    skipped: int = 0
    not_attempted: int = 0
    failures: list[RowFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures


def _validate_thread_count(thread_count: Any) -> int:
    if isinstance(thread_count, bool) or not isinstance(thread_count, int) or thread_count < 1:
        raise DispatcherConfigError(thread_count)
    return thread_count


def chunk_bounds(total: int, thread_count: int) -> list[tuple[int, int]]:
    """
    Compute the [start, stop) window of every worker.

    Args:
        total: Number of rows
        thread_count: Number of workers (>= 1)

    Returns:
        Exactly thread_count (start, stop) pairs covering range(total) in order

    Raises:
        DispatcherConfigError: If thread_count < 1
    """
    _validate_thread_count(thread_count)
    size = math.ceil(total / thread_count)
    return [
        (min(worker * size, total), min((worker + 1) * size, total))
        for worker in range(thread_count)
    ]


def first_field(row: Any) -> Any:
    """First value of a mapping row or first item of a sequence row; None if empty."""
    if isinstance(row, Mapping):
        return next(iter(row.values()), None)
    if isinstance(row, Sequence) and not isinstance(row, str):
        return row[0] if row else None
    return row


def is_comment_row(row: Any) -> bool:
    """Whether a row's first field starts with the comment marker."""
    value = first_field(row)
    return isinstance(value, str) and value.startswith(COMMENT_MARKER)


class RowDispatcher:
    """
    Fan rows out to a fixed pool of concurrent workers and join them.

    A dispatcher runs once; create a new one for each dispatch.

    Usage:
        dispatcher = RowDispatcher(thread_count=4)
        result = await dispatcher.run(rows, import_row)
    """

    def __init__(
        self,
        thread_count: int,
        failure_policy: FailurePolicy = FailurePolicy.ABORT_CHUNK,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            thread_count: Number of workers (>= 1)
            failure_policy: What a worker does after a row fails

        Raises:
            DispatcherConfigError: If thread_count < 1
        """
        self.thread_count = _validate_thread_count(thread_count)
        self.failure_policy = FailurePolicy(failure_policy)
        self.state = DispatchState.NOT_STARTED
        self._cancelled = asyncio.Event()
        self.collector = get_global_collector()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask every worker to stop before its next row."""
        self._cancelled.set()

    async def run(self, rows: Sequence[Any], per_row_fn: RowCallback) -> DispatchResult:
        """
        Dispatch rows to workers and wait for all of them.

        Args:
            rows: Ordered rows; comment rows are skipped here
            per_row_fn: Callback applied to each non-comment row; coroutine
                functions are awaited, plain callables run in a thread

        Returns:
            DispatchResult when every row succeeded

        Raises:
            DispatchError: After join, if any row callback raised
            RuntimeError: If this dispatcher already ran
        """
        if self.state is not DispatchState.NOT_STARTED:
            raise RuntimeError(f"Dispatcher already {self.state.value}")

        rows = list(rows)
        bounds = chunk_bounds(len(rows), self.thread_count)
        result = DispatchResult(total_rows=len(rows), thread_count=self.thread_count)

        logger.info(
            "Starting dispatch",
            rows=len(rows),
            thread_count=self.thread_count,
            chunk_size=bounds[0][1] - bounds[0][0],
            failure_policy=self.failure_policy.value,
        )

        self.state = DispatchState.RUNNING
        start_time = time.perf_counter()
        try:
            await asyncio.gather(
                *(
                    self._worker(worker_id, rows, start, stop, per_row_fn, result)
                    for worker_id, (start, stop) in enumerate(bounds)
                )
            )
        finally:
            self.state = DispatchState.JOINED
            result.duration_seconds = time.perf_counter() - start_time

        logger.info(
            "Dispatch complete",
            processed=result.processed,
            skipped=result.skipped,
            failed=result.failed,
            not_attempted=result.not_attempted,
            duration_seconds=f"{result.duration_seconds:.2f}",
        )

        if result.failures:
            raise DispatchError(result.failures, result)
        return result

    async def _worker(
        self,
        worker_id: int,
        rows: list[Any],
        start: int,
        stop: int,
        per_row_fn: RowCallback,
        result: DispatchResult,
    ) -> None:
        with LogContext(worker=worker_id):
            logger.debug("Worker started", start=start, stop=stop)

            for index in range(start, stop):
                if self._cancelled.is_set():
                    result.not_attempted += stop - index
                    logger.debug("Worker cancelled", remaining=stop - index)
                    break

                row = rows[index]
                if is_comment_row(row):
                    result.skipped += 1
                    self.collector.count_row("skipped")
                    continue

                try:
                    await self._call(per_row_fn, row)
                except Exception as e:
                    failure = RowFailure(index=index, row=row, error=e)
                    result.failures.append(failure)
                    self.collector.count_row("failed")
                    logger.error("Row failed", row_index=index, kind=failure.kind, error=str(e))

                    if self.failure_policy is FailurePolicy.CONTINUE:
                        continue
                    if self.failure_policy is FailurePolicy.FAIL_FAST:
                        self._cancelled.set()
                    result.not_attempted += stop - index - 1
                    break

                result.processed += 1
                self.collector.count_row("processed")

            logger.debug("Worker finished", start=start, stop=stop)

    @staticmethod
    async def _call(per_row_fn: RowCallback, row: Any) -> None:
        if inspect.iscoroutinefunction(per_row_fn):
            await per_row_fn(row)
            return
        # Blocking callbacks run off the event loop so workers still overlap
        outcome = await asyncio.to_thread(per_row_fn, row)
        if inspect.isawaitable(outcome):
            await outcome


async def dispatch_rows(
    rows: Sequence[Any],
    thread_count: int,
    per_row_fn: RowCallback,
    failure_policy: FailurePolicy = FailurePolicy.ABORT_CHUNK,
) -> DispatchResult:
    """
    Run rows through a fresh RowDispatcher.

    Args:
        rows: Ordered rows
        thread_count: Number of workers (>= 1)
        per_row_fn: Callback applied to each non-comment row
        failure_policy: What a worker does after a row fails

    Returns:
        DispatchResult when every row succeeded

    Raises:
        DispatcherConfigError: If thread_count < 1
        DispatchError: If any row failed
    """
    dispatcher = RowDispatcher(thread_count, failure_policy=failure_policy)
    return await dispatcher.run(rows, per_row_fn)
