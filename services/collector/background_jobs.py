"""Track detached asyncio tasks so they are not garbage collected mid-flight."""

import asyncio
import logging
from typing import Coroutine, Optional, Set

LOGGER = logging.getLogger(__name__)


class BackgroundJobs:
    """Run fire-and-forget coroutines and drain them on shutdown."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Schedule `coro` on the running loop and keep a reference until it finishes."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            LOGGER.warning("Background job %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Background job %s failed", task.get_name(), exc_info=exc)

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for running jobs; cancel whatever is still running after `timeout` seconds."""
        if not self._tasks:
            return
        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
