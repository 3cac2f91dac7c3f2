# src/a11y_auditor/managers/worker_pool_manager.py
"""
Worker Pool Manager
Drains a shared queue with a fixed number of asyncio workers.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)


class WorkerPoolManager:
    """
    Runs `work_coro` over every item of an asyncio.Queue with at most
    `concurrency` items in flight.

    Each worker loops "take next item, await it, repeat" and exits once the
    queue is empty, so the pool finishes by itself when the work is done.
    Supports graceful shutdown via stop_event and temporary halts via
    pause_event.
    """

    def __init__(
            self,
            work_coro: Callable[[Any], Awaitable[None]],
            queue: asyncio.Queue,
            concurrency: int,
            stop_event: Optional[asyncio.Event] = None,
            pause_event: Optional[asyncio.Event] = None,
            name: str = "Worker",
    ):
        """
        Args:
            work_coro: Coroutine function executed for each queue item.
                       Exceptions are expected to be handled inside it; anything
                       that escapes is logged and the worker moves on.
            queue: Pre-filled queue of items.
            concurrency: Number of worker tasks to spawn.
            stop_event: Signal to stop picking up new items.
            pause_event: Cleared to make workers wait before the next item.
        """
        self.work_coro = work_coro
        self.queue = queue
        self.concurrency = max(1, concurrency)
        self.stop_event = stop_event or asyncio.Event()
        self.name = name

        # Defaults to 'set' (running).
        if pause_event is None:
            self.pause_event = asyncio.Event()
            self.pause_event.set()
        else:
            self.pause_event = pause_event

        self._tasks: List[asyncio.Task] = []
        self._has_started: bool = False

    def is_idle(self) -> bool:
        """Check if all spawned worker tasks have finished execution."""
        return all(task.done() for task in self._tasks)

    async def run(self) -> None:
        """Starts the pool and waits until every worker has exited."""
        if self._has_started:
            logger.warning("%s pool already running.", self.name)
            return

        self._has_started = True
        logger.debug("Starting %d %s workers for %d items.", self.concurrency, self.name, self.queue.qsize())

        self._tasks = [
            asyncio.create_task(self._worker_loop(f"{self.name}-{i + 1}"))
            for i in range(self.concurrency)
        ]

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            raise

        logger.debug("All %s workers have been shut down and gathered.", self.name)

    async def _worker_loop(self, name: str) -> None:
        logger.debug("[%s] Started.", name)

        while not self.stop_event.is_set():
            if not self.pause_event.is_set():
                await self.pause_event.wait()
                if self.stop_event.is_set():
                    break

            try:
                item = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break

            try:
                await self.work_coro(item)
            except Exception:
                logger.exception("[%s] Unhandled exception processing item: %s", name, item)
            finally:
                self.queue.task_done()

        logger.debug("[%s] Stopped.", name)


async def run_with_concurrency(
        items: Iterable[Any],
        concurrency: int,
        work_coro: Callable[[Any], Awaitable[None]],
        name: str = "Worker",
) -> None:
    """Queues `items` in order and drains them with a pool of `min(concurrency, len(items))` workers."""
    queue: asyncio.Queue = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    if queue.empty():
        return

    pool = WorkerPoolManager(work_coro, queue, min(max(1, concurrency), queue.qsize()), name=name)
    await pool.run()
