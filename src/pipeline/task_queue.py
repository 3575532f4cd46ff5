"""Fire-and-forget execution of pipeline runs.

HTTP handlers submit a run and return 202 immediately.  The runner keeps a
strong reference to every task until it finishes (the event loop only
keeps weak ones), logs anything that escapes a run, and lets the app wait
for outstanding runs on shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from src.utils.logging import get_logger


class BackgroundTaskRunner:
    """Tracks background tasks created with :meth:`submit`."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        """Schedule *coro* on the running loop and track it until done."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        self._logger.debug("task_submitted", task=task.get_name(), pending=len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._logger.warning("task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "task_crashed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for outstanding tasks; return how many were still running after *timeout*."""
        if not self._tasks:
            return 0
        self._logger.info("draining_tasks", pending=len(self._tasks))
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            self._logger.warning("drain_timeout", still_running=len(still_running))
        return len(still_running)
