"""Pydantic request/response schemas for the agroSage API.

Stored records (crops, history entries, garden profiles) are served with
their own camelCase ``to_public`` form; the models here cover the
envelopes around them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.knowledge import CamelModel
from src.models.pipeline import PipelineKind, RunSnapshot, RunStatus


class RunAcceptedResponse(BaseModel):
    """Returned with 202 once a run has been handed to the background runner."""

    success: bool = True
    message: str
    run_id: str


class RunStatusResponse(BaseModel):
    """Latest known state of one of the caller's runs."""

    run_id: str
    kind: PipelineKind
    status: RunStatus
    progress: int = Field(ge=0, le=100)
    message: str = ""
    started_at: datetime
    finished_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, snapshot: RunSnapshot) -> RunStatusResponse:
        return cls(**snapshot.model_dump(exclude={"user_id"}))


class HistoryPageResponse(BaseModel):
    """One page of a user's history, newest first."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    page: int = Field(ge=1)
    limit: int = Field(ge=1, le=100)
    total: int = Field(ge=0)


class GardenProfileRequest(CamelModel):
    """Body of ``PUT /garden``; accepts camelCase or snake_case keys."""

    plant_type: str = Field(min_length=1)
    garden_type: str = Field(min_length=1)
    gardener_type: str = Field(min_length=1)
    city: str = ""
    state: str = ""
    country: str = ""
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    area: float | None = Field(default=None, gt=0)
    soil_type: str | None = None
    sunlight: str | None = None
    water_source: str | None = None
    purpose: str | None = None
    current_crops: list[str] = Field(default_factory=list)


class GardenCropCreateRequest(CamelModel):
    """Body of ``POST /garden/crops``."""

    crop_id: str = Field(min_length=1)


class GardenCropAcceptedResponse(BaseModel):
    """Returned with 202 once adding the crop has been handed to the background runner."""

    success: bool = True
    message: str
    crop_id: str


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Response for the health-check endpoint."""

    status: str = "healthy"
    version: str = "0.1.0"
    providers: dict[str, str] = Field(default_factory=dict)
