"""Knowledge records produced by the generation pipelines.

Defines the canonical entities that the knowledge store keeps across runs:
:class:`Crop` (identity: scientific name), :class:`CropDetails` (1:1
enrichment of a crop), and :class:`Disease` (identity: disease name + crop
name).  All models are frozen; updated copies are made with
``model_copy(update={...})``.

Field names are snake_case in Python and camelCase on the wire
(``by_alias=True``) so the same classes can validate model output such as
``{"scientificName": ...}`` and serialise API responses.  Embeddings are
excluded from every serialisation; they exist only for dedup.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class CamelModel(BaseModel):
    """Base for frozen models serialised with camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_public(self) -> dict[str, Any]:
        """Return the JSON-safe, camelCase form used in events and responses."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class DetailStatus(str, Enum):  # noqa: UP042
    """Lifecycle of a crop's enrichment document.

    ``PENDING`` on creation; advanced once to ``SUCCESS`` or ``FAILED`` by
    the enrichment phase.  A crop never goes back to ``PENDING``.
    """

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class Difficulty(str, Enum):  # noqa: UP042
    VERY_EASY = "very easy"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SoilType(str, Enum):  # noqa: UP042
    LOAMY = "loamy"
    SANDY = "sandy"
    CLAYEY = "clayey"
    SILTY = "silty"
    PEATY = "peaty"
    CHALKY = "chalky"


# ---------------------------------------------------------------------------
# Crop
# ---------------------------------------------------------------------------
class CropDetailsRef(CamelModel):
    """Pointer from a crop to its enrichment document."""

    status: DetailStatus = DetailStatus.PENDING
    details_id: str | None = None


class CropSummary(CamelModel):
    """Crop fields returned by the enrichment-summary prompt.

    Validation is lenient about casing of enum values because model output
    varies ("Easy" vs "easy").
    """

    name: str
    scientific_name: str
    difficulty: Difficulty = Difficulty.MEDIUM
    features: list[str] = Field(default_factory=list)
    description: str = ""
    maturity_time: str = ""
    planting_season: str = ""
    sunlight: str = ""
    water_need: str = ""
    soil_type: SoilType = SoilType.LOAMY

    @field_validator("difficulty", "soil_type", mode="before")
    @classmethod
    def _lowercase_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("features", mode="before")
    @classmethod
    def _coerce_features(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class Crop(CropSummary):
    """A stored crop record."""

    id: str
    slug: str
    image_url: str | None = None
    details: CropDetailsRef = Field(default_factory=CropDetailsRef)
    embedding: list[float] | None = Field(default=None, exclude=True)
    created_at: datetime = Field(default_factory=_utcnow)


class CropName(CamelModel):
    """One entry of the crop-name suggestion list."""

    name: str = Field(min_length=1)
    scientific_name: str = Field(min_length=1)


class CropDetails(CamelModel):
    """Full enrichment document for a crop.

    The document body is free-form (growth conditions, care, pests,
    companions, economics, ...) and kept as a dict in ``data``.
    """

    id: str
    crop_id: str
    slug: str
    scientific_name: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Disease
# ---------------------------------------------------------------------------
class DiseaseProfile(CamelModel):
    """Disease fields returned by the disease-generation prompt."""

    crop_name: str
    disease_name: str
    description: str = ""
    symptoms: list[str] = Field(default_factory=list)
    treatment: list[str] = Field(default_factory=list)
    causes: list[str] = Field(default_factory=list)
    preventive_tips: list[str] = Field(default_factory=list)

    @field_validator("symptoms", "treatment", "causes", "preventive_tips", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class Disease(DiseaseProfile):
    """A stored disease record."""

    id: str
    embedding: list[float] | None = Field(default=None, exclude=True)
    created_at: datetime = Field(default_factory=_utcnow)
