"""Pipeline run state and notification event models.

A run moves through :class:`RunStatus` strictly forward::

    initiated -> analyzing -> generatingData -> savingToDB -> completed

with ``failed`` reachable from any non-terminal status.  The event models
below are the payloads delivered through the notification hub; each one
is stamped with the time it was built.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.knowledge import CamelModel, DetailStatus, _utcnow


class PipelineKind(str, Enum):  # noqa: UP042
    """The two generation pipelines; the value is also the room suffix."""

    CROP_SUGGESTION = "crop-suggestion"
    DISEASE_DETECTION = "disease-detection"


class RunStatus(str, Enum):  # noqa: UP042
    INITIATED = "initiated"
    ANALYZING = "analyzing"
    GENERATING_DATA = "generatingData"
    SAVING_TO_DB = "savingToDB"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the forward order; ``failed`` ranks after everything."""
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [
    RunStatus.INITIATED,
    RunStatus.ANALYZING,
    RunStatus.GENERATING_DATA,
    RunStatus.SAVING_TO_DB,
    RunStatus.COMPLETED,
    RunStatus.FAILED,
]


class RunSnapshot(BaseModel):
    """Latest known state of a run, as served by ``GET /runs/{run_id}``."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    user_id: str
    kind: PipelineKind
    status: RunStatus = RunStatus.INITIATED
    progress: int = 0
    message: str = ""
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------
class ProgressEvent(CamelModel):
    status: RunStatus
    progress: int = Field(ge=0, le=100)
    message: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorEvent(CamelModel):
    error: str
    timestamp: datetime = Field(default_factory=_utcnow)


class CropDetailsUpdateEvent(CamelModel):
    status: DetailStatus
    scientific_name: str
    slug: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class GardenAddingStatusEvent(CamelModel):
    """Outcome of adding a crop to a garden; there is no progress stream."""

    success: bool
    message: str
    crop_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


def result_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Stamp a result body with the emission time."""
    return {**data, "timestamp": _utcnow().isoformat()}
