"""Append-only history records and per-user garden profiles.

A history record is written exactly once per completed pipeline run, in the
same transaction as any knowledge records the run created.  It references
knowledge records by id only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from src.models.knowledge import CamelModel, DetailStatus, _utcnow
from src.models.weather import Coordinates, WeatherAverages


class HostedImage(CamelModel):
    """An image stored on the external image host."""

    id: str
    url: str


class DetectedDiseaseRef(CamelModel):
    status: DetailStatus = DetailStatus.PENDING
    id: str | None = None


class CropSuggestionHistory(CamelModel):
    """One completed crop suggestion run."""

    id: str
    user_id: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    coordinates: Coordinates | None = None
    weather: WeatherAverages | None = None
    image: HostedImage | None = None
    crop_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class DiseaseDetectionHistory(CamelModel):
    """One completed disease detection run."""

    id: str
    user_id: str
    crop_name: str
    description: str | None = None
    image: HostedImage | None = None
    detected_disease: DetectedDiseaseRef = Field(default_factory=DetectedDiseaseRef)
    created_at: datetime = Field(default_factory=_utcnow)


class GardenProfile(CamelModel):
    """Stored description of a user's garden, used by ``auto`` suggestions."""

    user_id: str
    plant_type: str
    garden_type: str
    gardener_type: str
    city: str = ""
    state: str = ""
    country: str = ""
    latitude: float | None = None
    longitude: float | None = None
    area: float | None = None
    soil_type: str | None = None
    sunlight: str | None = None
    water_source: str | None = None
    purpose: str | None = None
    current_crops: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=_utcnow)
