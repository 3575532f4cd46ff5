"""agroSage domain models -- re-exports all public model classes.

Submodules by concern:
    - knowledge.py -- Crop, CropDetails, Disease (stored knowledge records)
    - history.py   -- run histories, hosted images, garden profiles
    - garden.py    -- garden crops and their planting guides
    - pipeline.py  -- run status machine and notification event payloads
    - requests.py  -- transient pipeline inputs and temp upload handles
    - weather.py   -- coordinates and forecast averages
"""

from __future__ import annotations

from src.models.garden import (
    GardenCrop,
    GardenCropStatus,
    GuideStatus,
    PlantingGuide,
    PlantingStep,
)
from src.models.history import (
    CropSuggestionHistory,
    DetectedDiseaseRef,
    DiseaseDetectionHistory,
    GardenProfile,
    HostedImage,
)
from src.models.knowledge import (
    Crop,
    CropDetails,
    CropDetailsRef,
    CropName,
    CropSummary,
    DetailStatus,
    Difficulty,
    Disease,
    DiseaseProfile,
    SoilType,
)
from src.models.pipeline import (
    CropDetailsUpdateEvent,
    ErrorEvent,
    GardenAddingStatusEvent,
    PipelineKind,
    ProgressEvent,
    RunSnapshot,
    RunStatus,
)
from src.models.requests import (
    DetectionRequest,
    GardenCropRequest,
    SuggestionMode,
    SuggestionRequest,
    TempFileHandle,
)
from src.models.weather import Coordinates, WeatherAverages

__all__ = [
    "Coordinates",
    "Crop",
    "CropDetails",
    "CropDetailsRef",
    "CropDetailsUpdateEvent",
    "CropName",
    "CropSuggestionHistory",
    "CropSummary",
    "DetailStatus",
    "DetectedDiseaseRef",
    "DetectionRequest",
    "Difficulty",
    "Disease",
    "DiseaseDetectionHistory",
    "DiseaseProfile",
    "ErrorEvent",
    "GardenAddingStatusEvent",
    "GardenCrop",
    "GardenCropRequest",
    "GardenCropStatus",
    "GardenProfile",
    "GuideStatus",
    "HostedImage",
    "PipelineKind",
    "PlantingGuide",
    "PlantingStep",
    "ProgressEvent",
    "RunSnapshot",
    "RunStatus",
    "SoilType",
    "SuggestionMode",
    "SuggestionRequest",
    "TempFileHandle",
    "WeatherAverages",
]
