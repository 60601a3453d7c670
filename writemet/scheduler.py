"""Serializing request queue with a minimum spacing between call starts."""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


class RequestScheduler:
    """FIFO queue that runs one task at a time.

    Consecutive task starts are at least ``min_interval`` seconds apart. A task's
    exception is delivered to the caller that enqueued it, and a task that raises
    CancelledError cancels its caller's future; either way the queue keeps draining.

    Attributes:
        min_interval: Minimum seconds between the starts of two consecutive tasks
    """

    def __init__(
        self,
        min_interval: float = 12.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self._last_start: Optional[float] = None
        self._drain_task: Optional[asyncio.Task] = None

    async def enqueue(self, task: Task) -> Any:
        """Queue ``task`` and wait for its result."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append((task, future))
        self._ensure_draining()
        return await future

    def queue_length(self) -> int:
        """Number of tasks waiting to start (the running task is not counted)."""
        return len(self._queue)

    def estimated_wait_seconds(self) -> float:
        return self.queue_length() * self.min_interval

    def _ensure_draining(self) -> None:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue:
                if self._last_start is not None:
                    wait = self.min_interval - (self._clock() - self._last_start)
                    if wait > 0:
                        logger.debug("Waiting %.2fs before next request (%d queued)", wait, len(self._queue))
                        await self._sleep(wait)

                task, future = self._queue.popleft()
                self._last_start = self._clock()
                try:
                    result = await task()
                except asyncio.CancelledError:
                    logger.debug("Queued task was cancelled")
                    future.cancel()
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
                finally:
                    # the caller must never wait on a future nobody will settle
                    if not future.done():
                        future.cancel()
        except BaseException:
            while self._queue:
                _, waiting = self._queue.popleft()
                waiting.cancel()
            raise
