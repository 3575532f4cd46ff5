"""Shared run lifecycle for the generation pipelines.

A run goes through::

    initiated -> analyzing -> generatingData -> savingToDB -> completed

Subclasses implement :meth:`GenerationPipeline._execute`, which performs
the stages and returns the result.  This base class owns everything
common to both pipelines:

- the run boundary: :meth:`GenerationPipeline.run` never raises;
- progress reporting through the :class:`ProgressTracker`, so at most one
  terminal event is ever emitted;
- the failure policy: unwind compensations newest first, then emit a
  single redacted ``failed`` event;
- best-effort deletion of the run's temp upload, whatever the outcome;
- bounded retries for generation calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar
from uuid import uuid4

import structlog

from src.interfaces.temp_file_store import ITempFileStore
from src.models.pipeline import PipelineKind, RunStatus
from src.models.requests import TempFileHandle
from src.pipeline.compensation import CompensationStack
from src.pipeline.notification_hub import PipelineChannel
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.task_queue import BackgroundTaskRunner
from src.utils.errors import DetectionRejectedError
from src.utils.logging import get_logger
from src.utils.retry import retry_async

RequestT = TypeVar("RequestT")
_T = TypeVar("_T")


@dataclass(frozen=True)
class RunResult:
    """What a successful run hands back to the base class.

    ``payload`` is the body of the result event; ``records`` carries any
    stored records a follow-up phase needs.
    """

    payload: dict[str, Any]
    records: list[Any] = field(default_factory=list)


class RunContext:
    """Progress reporting for one run; updates refused by the tracker are not emitted."""

    def __init__(
        self,
        run_id: str,
        user_id: str,
        tracker: ProgressTracker,
        channel: PipelineChannel,
        logger: structlog.BoundLogger,
    ) -> None:
        self.run_id = run_id
        self.user_id = user_id
        self.stage = RunStatus.INITIATED
        self._tracker = tracker
        self._channel = channel
        self._logger = logger

    async def advance(self, status: RunStatus, progress: int, message: str = "") -> None:
        snapshot = self._tracker.advance(self.run_id, status, progress, message)
        if snapshot is None:
            return
        if status != self.stage:
            self._logger.info("stage_started", stage=status.value, progress=snapshot.progress)
        self.stage = status
        await self._channel.progress(self.user_id, status, snapshot.progress, message or None)

    async def complete(self, payload: dict[str, Any]) -> bool:
        if self._tracker.advance(self.run_id, RunStatus.COMPLETED, 100, "Completed") is None:
            return False
        await self._channel.progress(self.user_id, RunStatus.COMPLETED, 100, "Completed")
        await self._channel.result(self.user_id, payload)
        self.stage = RunStatus.COMPLETED
        return True

    async def fail(self, message: str) -> bool:
        if self._tracker.advance(self.run_id, RunStatus.FAILED, 0, message) is None:
            return False
        await self._channel.error(self.user_id, message)
        self.stage = RunStatus.FAILED
        return True


class GenerationPipeline(ABC, Generic[RequestT]):
    """Base class for a pipeline kind.

    Parameters
    ----------
    channel:
        Notification channel of this pipeline's kind.
    tracker:
        Shared run registry.
    runner:
        Background executor used by :meth:`submit`.
    temp_files:
        Store holding the run's uploaded image, if any.
    max_generation_attempts:
        Attempts per retried generation call, first one included.
    retry_base_delay:
        Delay in seconds before the second attempt.
    """

    kind: PipelineKind
    failure_message = "Something went wrong. Please try again."

    def __init__(
        self,
        *,
        channel: PipelineChannel,
        tracker: ProgressTracker,
        runner: BackgroundTaskRunner,
        temp_files: ITempFileStore,
        max_generation_attempts: int = 2,
        retry_base_delay: float = 0.5,
    ) -> None:
        self._channel = channel
        self._tracker = tracker
        self._runner = runner
        self._temp_files = temp_files
        self._max_attempts = max(1, max_generation_attempts)
        self._retry_base_delay = retry_base_delay
        self._logger: structlog.BoundLogger = get_logger(type(self).__module__)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def submit(self, request: RequestT) -> str:
        """Start a run in the background and return its id immediately."""
        run_id = uuid4().hex
        self._tracker.start(run_id, self._user_id(request), self.kind)
        self._runner.submit(self.run(request, run_id), name=f"{self.kind.value}:{run_id}")
        return run_id

    async def run(self, request: RequestT, run_id: str | None = None) -> None:
        """Execute one run to completion; results only go out as notifications."""
        user_id = self._user_id(request)
        if run_id is None or self._tracker.get_status(run_id) is None:
            run_id = run_id or uuid4().hex
            self._tracker.start(run_id, user_id, self.kind)

        with structlog.contextvars.bound_contextvars(run_id=run_id, user_id=user_id, kind=self.kind.value):
            ctx = RunContext(run_id, user_id, self._tracker, self._channel, self._logger)
            result = await self._run_primary(request, ctx)
            if result is not None:
                try:
                    await self._after_commit(request, ctx, result)
                except Exception as exc:
                    self._logger.error("follow_up_failed", error=str(exc), exc_info=True)

    async def _run_primary(self, request: RequestT, ctx: RunContext) -> RunResult | None:
        compensations = CompensationStack()
        try:
            await ctx.advance(RunStatus.INITIATED, 0, "Request received")
            result = await self._execute(request, ctx, compensations)
        except Exception as exc:
            self._logger.error(
                "run_failed",
                stage=ctx.stage.value,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            await compensations.unwind()
            await ctx.fail(self._redact(exc))
            return None
        else:
            compensations.discard()
            await ctx.complete(result.payload)
            self._logger.info("run_completed")
            return result
        finally:
            await self._release_upload(self._upload_of(request))

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _execute(
        self,
        request: RequestT,
        ctx: RunContext,
        compensations: CompensationStack,
    ) -> RunResult:
        """Perform the stages of one run and return its result."""

    async def _after_commit(self, request: RequestT, ctx: RunContext, result: RunResult) -> None:
        """Follow-up work after the result was emitted; failures never fail the run."""

    @staticmethod
    def _user_id(request: Any) -> str:
        return request.user_id

    @staticmethod
    def _upload_of(request: Any) -> TempFileHandle | None:
        return getattr(request, "image", None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _generate(self, label: str, call: Callable[[], Awaitable[_T]]) -> _T:
        """Run a generate-and-parse callable with bounded retries."""
        return await retry_async(
            call,
            max_attempts=self._max_attempts,
            base_delay=self._retry_base_delay,
            label=label,
        )

    def _redact(self, exc: Exception) -> str:
        if isinstance(exc, DetectionRejectedError):
            return exc.user_message
        return self.failure_message

    async def _release_upload(self, handle: TempFileHandle | None) -> None:
        if handle is None:
            return
        try:
            await self._temp_files.delete(handle)
        except Exception as exc:
            self._logger.warning("temp_upload_cleanup_failed", path=handle.path, error=str(exc))
