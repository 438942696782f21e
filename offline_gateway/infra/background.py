"""
Detached background tasks for cache revalidation and write-behind.

Strategies return a response to the caller before some of their work is
done: runtime-tier writes, stale-while-revalidate refreshes and document
refreshes. That work runs as detached asyncio tasks tracked here so that
shutdown (and tests) can wait for it to settle.

Key features:
- spawn() never blocks the caller and never raises the task's error to it
- Failures are logged with the task name, then dropped
- drain() waits for in-flight tasks, with a timeout
- Tasks keep the structlog context of the code that spawned them
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class BackgroundTasks:
    """
    Tracks detached coroutines until they finish.

    Example usage:
        background = BackgroundTasks()
        background.spawn(tier.put(key, entry), name="runtime-write")
        ...
        await background.drain(timeout=10.0)
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._completed = 0
        self._failed = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule coro as a detached task and return it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        log.debug("background.task_spawned", task_name=name, in_flight=len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.info("background.task_cancelled", task_name=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self._failed += 1
            log.warning(
                "background.task_failed",
                task_name=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            self._completed += 1

    async def drain(self, *, timeout: float | None = None) -> None:
        """
        Wait until every in-flight task (including ones spawned while
        draining) has finished.

        Args:
            timeout: Give up after this many seconds. Tasks still running at
                     that point are left running, not cancelled.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                log.warning("background.drain_timeout", in_flight=len(self._tasks))
                return
            await asyncio.wait(set(self._tasks), timeout=remaining)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def stats(self) -> dict[str, int]:
        return {
            "in_flight": len(self._tasks),
            "completed": self._completed,
            "failed": self._failed,
        }
