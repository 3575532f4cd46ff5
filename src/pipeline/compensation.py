"""Undo actions for side effects a run makes outside the database.

Each external side effect (a hosted image upload, for example) pushes its
undo action as soon as it succeeds.  If the run fails, :meth:`unwind`
runs them newest first.  Every action is attempted even when an earlier
one fails, and failures are only logged.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class CompensationStack:
    """Ordered stack of named async undo actions."""

    def __init__(self) -> None:
        self._actions: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def __len__(self) -> int:
        return len(self._actions)

    def push(self, label: str, action: Callable[[], Awaitable[Any]]) -> None:
        self._actions.append((label, action))

    def discard(self) -> None:
        """Forget all actions; called once the run's results are committed."""
        self._actions.clear()

    async def unwind(self) -> list[str]:
        """Run all actions newest first and return the labels that failed."""
        failed: list[str] = []
        while self._actions:
            label, action = self._actions.pop()
            try:
                await action()
            except Exception as exc:
                failed.append(label)
                _logger.error("compensation_failed", action=label, error=str(exc))
            else:
                _logger.info("compensation_applied", action=label)
        return failed
