"""Owner of detached pipeline tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional

logger = logging.getLogger("callscribe.pipeline")


class PipelineSupervisor:
    """Keep strong references to background runs and report their failures.

    Tasks are tracked until they finish so the event loop cannot garbage
    collect them mid-flight; :meth:`drain` waits for (or cancels) whatever is
    still running on shutdown.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable[object], *, name: str, delay: float = 0.0) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro, delay), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    @staticmethod
    async def _run(coro: Awaitable[object], delay: float) -> object:
        if delay > 0:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                # Close the never-awaited coroutine before propagating.
                close = getattr(coro, "close", None)
                if close is not None:
                    close()
                raise
        return await coro

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until no tracked task remains.

        Runs may spawn follow-up tasks (analysis), so the wait loops until the
        set is empty. With a ``timeout`` the leftovers are cancelled.
        """

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
            _, pending = await asyncio.wait(set(self._tasks), timeout=remaining)
            if pending and deadline is not None and loop.time() >= deadline:
                logger.warning("Cancelling %s unfinished background task(s)", len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                break


__all__ = ["PipelineSupervisor"]
