"""Crops a user has added to their garden, with generated planting guides.

Adding a crop creates a :class:`PlantingGuide` and a :class:`GardenCrop`
that points at it, both in one transaction.  The garden crop copies the
crop's display fields so the garden view does not depend on later edits
to the shared knowledge record.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from src.models.knowledge import CamelModel, _utcnow


class GardenCropStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    ACTIVE = "active"
    REMOVED = "removed"


class GuideStatus(str, Enum):  # noqa: UP042
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"


class PlantingStep(CamelModel):
    """One phase of the initial planting process."""

    title: str = Field(min_length=1)
    description: str = ""
    instructions: list[str] = Field(default_factory=list)
    note: str | None = None

    @field_validator("instructions", mode="before")
    @classmethod
    def _coerce_instructions(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class PlantingGuide(CamelModel):
    """Ordered planting steps for one crop in one user's garden."""

    id: str
    user_id: str
    crop_id: str
    steps: list[PlantingStep] = Field(default_factory=list)
    current_step: int = 0
    status: GuideStatus = GuideStatus.IN_PROGRESS
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def number_of_steps(self) -> int:
        return len(self.steps)

    def to_public(self) -> dict[str, Any]:
        return {**super().to_public(), "numberOfSteps": self.number_of_steps}


class GardenCrop(CamelModel):
    """A crop growing in a user's garden."""

    id: str
    user_id: str
    crop_id: str
    crop_name: str
    scientific_name: str
    description: str = ""
    image_url: str | None = None
    status: GardenCropStatus = GardenCropStatus.PENDING
    planting_guide_id: str
    created_at: datetime = Field(default_factory=_utcnow)
