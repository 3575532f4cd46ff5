"""Transient request models handed from the HTTP layer to a pipeline run.

Requests are validated before a run starts; a run never sees a request
that lacks the minimum fields for its mode.  Ownership passes to the run
once it is submitted, including responsibility for deleting the temp
upload referenced by ``image``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.history import GardenProfile
from src.models.knowledge import Crop


class TempFileHandle(BaseModel):
    """A file written to local temp storage by the upload boundary."""

    model_config = ConfigDict(frozen=True)

    path: str
    mime_type: str
    original_name: str


class SuggestionMode(str, Enum):  # noqa: UP042
    MANUAL = "manual"
    AUTO = "auto"  # garden-linked: attributes come from the stored GardenProfile


class SuggestionRequest(BaseModel):
    """Input for one crop suggestion run."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    mode: SuggestionMode = SuggestionMode.MANUAL
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
    avoid_current_crops: bool = False
    image: TempFileHandle | None = None

    @model_validator(mode="after")
    def _check_location(self) -> SuggestionRequest:
        has_coordinates = self.latitude is not None and self.longitude is not None
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        if not has_coordinates and not (self.city and self.country):
            raise ValueError("either coordinates or city and country are required")
        return self

    @property
    def location_label(self) -> str:
        parts = [p for p in (self.city, self.state, self.country) if p]
        if parts:
            return ", ".join(parts)
        return f"{self.latitude}, {self.longitude}"

    @classmethod
    def from_garden(
        cls,
        profile: GardenProfile,
        *,
        avoid_current_crops: bool = False,
        image: TempFileHandle | None = None,
    ) -> SuggestionRequest:
        """Build an ``auto`` mode request from a stored garden profile."""
        return cls(
            user_id=profile.user_id,
            mode=SuggestionMode.AUTO,
            plant_type=profile.plant_type,
            garden_type=profile.garden_type,
            gardener_type=profile.gardener_type,
            city=profile.city,
            state=profile.state,
            country=profile.country,
            latitude=profile.latitude,
            longitude=profile.longitude,
            area=profile.area,
            soil_type=profile.soil_type,
            sunlight=profile.sunlight,
            water_source=profile.water_source,
            purpose=profile.purpose,
            current_crops=list(profile.current_crops),
            avoid_current_crops=avoid_current_crops,
            image=image,
        )

    def history_inputs(self) -> dict[str, Any]:
        """Input parameters recorded on the history entry (no temp paths)."""
        return self.model_dump(mode="json", exclude={"user_id", "image"})


class DetectionRequest(BaseModel):
    """Input for one disease detection run; the image is mandatory."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    crop_name: str = Field(min_length=1)
    description: str | None = None
    image: TempFileHandle


class GardenCropRequest(BaseModel):
    """Input for adding a stored crop to the user's garden."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    crop: Crop
