"""Bounded retry helper for generation calls made by the pipelines.

The generation adapter never retries on its own; the orchestrator decides
which calls are worth a second attempt and wraps them with
:func:`retry_async`.  Both the AI call and the parse of its output run
inside the retried callable, so a malformed answer is retried the same way
as a transport failure.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.utils.errors import AgroSageError, DetectionRejectedError
from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


def _default_should_retry(error: Exception) -> bool:
    """Retry application errors except explicit refusals from the model."""
    if isinstance(error, DetectionRejectedError):
        return False
    return isinstance(error, AgroSageError)


async def retry_async(
    call: Callable[[], Awaitable[_T]],
    *,
    max_attempts: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    jitter: float = 0.2,
    label: str = "generation",
    classify: Callable[[Exception], bool] | None = None,
) -> _T:
    """Await *call* up to *max_attempts* times with exponential backoff.

    Parameters
    ----------
    call:
        Zero-argument coroutine factory; invoked once per attempt.
    max_attempts:
        Total attempts including the first one.
    base_delay:
        Delay in seconds before the second attempt; doubles afterwards.
    max_delay:
        Upper bound on any single delay.
    jitter:
        Fractional (+/-) randomisation applied to each delay.
    label:
        Name used in retry log events.
    classify:
        Predicate deciding whether an exception is retryable.

    Raises
    ------
    Exception
        The last exception from *call* once attempts are exhausted or the
        error is classified as non-retryable.
    """
    should_retry = classify or _default_should_retry
    attempt = 0

    while True:
        attempt += 1
        try:
            return await call()
        except Exception as exc:
            if attempt >= max_attempts or not should_retry(exc):
                raise

            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            if jitter:
                delay = max(0.0, delay * (1 + random.uniform(-jitter, jitter)))

            _logger.warning(
                "retrying_call",
                label=label,
                attempt=attempt,
                max_attempts=max_attempts,
                delay=round(delay, 2),
                error=str(exc),
            )
            await asyncio.sleep(delay)
