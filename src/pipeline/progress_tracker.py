"""Per-run status tracking with forward-only transitions.

Holds the latest :class:`RunSnapshot` for every recent run and decides
whether a proposed update is allowed:

- status only moves forward (``initiated -> analyzing -> generatingData
  -> savingToDB -> completed``); ``failed`` is reachable from any
  non-terminal status;
- progress never decreases and stays within 0-100;
- once a run is terminal, every later update is refused.

The pipeline only emits a notification for updates the tracker accepted,
which is what guarantees a single terminal event per run.  Snapshots are
also served by ``GET /runs/{run_id}``.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from cachetools import TTLCache

from src.models.pipeline import PipelineKind, RunSnapshot, RunStatus
from src.utils.logging import get_logger


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ProgressTracker:
    """Registry of run snapshots.

    Parameters
    ----------
    max_runs:
        Maximum number of snapshots kept; the oldest are evicted first.
    ttl:
        Seconds a snapshot is kept after its last update.
    """

    def __init__(self, max_runs: int = 10_000, ttl: int = 24 * 3600) -> None:
        self._runs: TTLCache[str, RunSnapshot] = TTLCache(maxsize=max_runs, ttl=ttl)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def start(self, run_id: str, user_id: str, kind: PipelineKind) -> RunSnapshot:
        """Register a new run in status ``initiated`` at 0%."""
        snapshot = RunSnapshot(run_id=run_id, user_id=user_id, kind=kind)
        self._runs[run_id] = snapshot
        return snapshot

    def advance(
        self,
        run_id: str,
        status: RunStatus,
        progress: int,
        message: str = "",
    ) -> RunSnapshot | None:
        """Apply an update; return the new snapshot, or ``None`` if refused."""
        current = self._runs.get(run_id)
        if current is None:
            self._logger.warning("progress_unknown_run", run_id=run_id, status=status.value)
            return None
        if current.status.is_terminal:
            self._logger.warning(
                "progress_after_terminal",
                run_id=run_id,
                current=current.status.value,
                proposed=status.value,
            )
            return None
        if status != RunStatus.FAILED and status.rank < current.status.rank:
            self._logger.warning(
                "progress_backwards",
                run_id=run_id,
                current=current.status.value,
                proposed=status.value,
            )
            return None

        clamped = max(0, min(100, int(progress)))
        if status == RunStatus.COMPLETED:
            clamped = 100
        update = {
            "status": status,
            "progress": max(current.progress, clamped),
            "message": message,
        }
        if status.is_terminal:
            update["finished_at"] = _now()

        snapshot = current.model_copy(update=update)
        self._runs[run_id] = snapshot
        self._logger.debug(
            "progress_update",
            run_id=run_id,
            status=status.value,
            progress=snapshot.progress,
        )
        return snapshot

    def get_status(self, run_id: str) -> RunSnapshot | None:
        return self._runs.get(run_id)
