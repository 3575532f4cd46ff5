"""Shared pytest fixtures for the agroSage test suite.

The fakes below stand in for the external services (LLM, embeddings,
weather, image host) so the pipelines can run end to end against a real
SQLite knowledge store in ``tmp_path``.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.image_host import IImageHost
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.weather_provider import IWeatherProvider
from src.models.history import HostedImage
from src.models.knowledge import Crop, CropSummary, DiseaseProfile
from src.models.pipeline import PipelineKind
from src.models.requests import DetectionRequest, SuggestionRequest, TempFileHandle
from src.models.weather import Coordinates, WeatherAverages
from src.pipeline.crop_suggestion import CropSuggestionPipeline
from src.pipeline.disease_detection import DiseaseDetectionPipeline
from src.pipeline.garden import GardenPlanner
from src.pipeline.notification_hub import NotificationHub, PipelineChannel, room_name
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.task_queue import BackgroundTaskRunner
from src.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore
from src.providers.temp_files.local_temp_file_store import LocalTempFileStore
from src.services.generation_adapter import GenerationAdapter
from src.utils.errors import GenerationError, ImageHostError

# Distinctive phrases of each prompt template, used to route fake answers.
CROP_NAMES = "plants suitable for the garden"
CROP_SUMMARY = "describe this crop"
CROP_DETAILS = "Give costs in"
DISEASE_NAME = "crop disease detector"
DISEASE_PROFILE = "disease analyst"
PLANTING_GUIDE = "planting guide for the crop"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

TOMATO_NAMES = '[{"name": "Tomato", "scientificName": "Solanum lycopersicum"}]'
TOMATO_SUMMARY = (
    '{"name": "Tomato", "scientificName": "Solanum lycopersicum", "difficulty": "Easy", '
    '"features": ["High yield"], "description": "Warm season fruiting crop.", '
    '"maturityTime": "70 days", "plantingSeason": "Winter", "sunlight": "Full sun", '
    '"waterNeed": "Moderate", "soilType": "Loamy"}'
)
TOMATO_DETAILS = '```json\n{"growthConditions": {"temperature": "20-30 C"}, "care": ["Stake plants"]}\n```'
LEAF_BLIGHT_PROFILE = (
    '{"cropName": "Tomato", "diseaseName": "Early Blight", "description": "Fungal leaf spots.", '
    '"symptoms": ["Brown rings"], "treatment": ["Copper spray"], "causes": ["Alternaria solani"], '
    '"preventiveTips": ["Rotate crops"]}'
)
TOMATO_GUIDE = (
    '```JSON\n[{"title": "Soil Preparation", "description": "Loosen the bed.", '
    '"details": ["Dig 30 cm deep", "Mix in compost"], "tips": "Test the soil pH first"}, '
    '{"title": "Transplanting", "description": "Move seedlings outdoors.", "details": "Plant at dusk"}]\n```'
)


def unit_vector_at(similarity: float) -> list[float]:
    """A 3-d unit vector whose cosine with ``[1, 0, 0]`` equals *similarity*."""
    return [similarity, math.sqrt(1.0 - similarity**2), 0.0]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

Answer = str | Exception | Callable[[str], str]


class ScriptedLLM(ILLMProvider):
    """LLM fake answering by the first registered marker found in the prompt.

    Each marker has a queue of answers; the last answer repeats.  An answer
    can be a string, an exception to raise, or a callable of the prompt.
    """

    def __init__(self, vision: bool = True) -> None:
        self._vision = vision
        self._answers: dict[str, list[Answer]] = {}
        self.prompts: list[str] = []

    def on(self, marker: str, *answers: Answer) -> ScriptedLLM:
        self._answers[marker] = list(answers)
        return self

    def calls_for(self, marker: str) -> int:
        return sum(1 for p in self.prompts if marker in p)

    def _answer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        for marker, queue in self._answers.items():
            if marker in prompt:
                answer = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(answer, Exception):
                    raise answer
                if callable(answer):
                    return answer(prompt)
                return answer
        raise GenerationError(message="No scripted answer for prompt", provider_name="scripted")

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        return self._answer(user_prompt)

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        return self._answer(prompt)

    def supports_vision(self) -> bool:
        return self._vision

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True

    async def validate_credentials(self) -> bool:
        return True


class FakeEmbedder(IEmbeddingProvider):
    """Returns the vector registered for the first key contained in the text."""

    def __init__(self, default: list[float] | None = None) -> None:
        self.vectors: dict[str, list[float]] = {}
        self.default = default or [1.0, 0.0, 0.0]
        self.texts: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.texts.append(text)
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        return self.default

    def get_dimension(self) -> int:
        return 3

    def get_provider_name(self) -> str:
        return "fake-embedding"

    def is_available(self) -> bool:
        return True


class FakeWeather(IWeatherProvider):
    AVERAGES = WeatherAverages(
        avg_max_temp=31.25,
        avg_min_temp=24.1,
        avg_humidity=78.5,
        avg_rainfall=4.2,
        avg_wind_speed=11.3,
        dominant_wind_direction=185.0,
    )

    def __init__(self) -> None:
        self.places: dict[str, Coordinates] = {"dhaka": Coordinates(latitude=23.81, longitude=90.41)}
        self.calls: list[tuple[float, float, int]] = []

    async def resolve_coordinates(
        self, city: str, state: str | None, country: str
    ) -> Coordinates | None:
        return self.places.get(city.lower())

    async def averages_over_days(self, latitude: float, longitude: float, days: int) -> WeatherAverages:
        self.calls.append((latitude, longitude, days))
        return self.AVERAGES

    def get_provider_name(self) -> str:
        return "fake-weather"


class FakeImageHost(IImageHost):
    def __init__(self) -> None:
        self.uploads: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.fail_upload = False

    async def upload(self, local_path: str, name: str, folder: str) -> HostedImage:
        if self.fail_upload:
            raise ImageHostError(message="upload refused", provider_name="fake-host")
        image_id = f"img-{len(self.uploads) + 1}"
        self.uploads.append((folder, name))
        return HostedImage(id=image_id, url=f"https://images.test/{folder}/{image_id}")

    async def delete(self, image_id: str) -> None:
        self.deleted.append(image_id)

    def get_provider_name(self) -> str:
        return "fake-host"


class EventRecorder:
    """A hub connection that keeps every frame it receives."""

    def __init__(self, hub: NotificationHub, user_id: str) -> None:
        self.frames: list[dict[str, Any]] = []
        self.connection_id = hub.connect(user_id, self._send)
        for kind in PipelineKind:
            hub.join(self.connection_id, room_name(user_id, kind))

    async def _send(self, frame: dict[str, Any]) -> None:
        self.frames.append(frame)

    def named(self, event: str) -> list[dict[str, Any]]:
        return [f["data"] for f in self.frames if f["event"] == event]

    @property
    def events(self) -> list[str]:
        return [f["event"] for f in self.frames]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> SQLiteKnowledgeStore:
    knowledge = SQLiteKnowledgeStore(db_path=tmp_path / "knowledge.db")
    await knowledge.initialize()
    return knowledge


@pytest.fixture
def temp_files(tmp_path: Path) -> LocalTempFileStore:
    return LocalTempFileStore(upload_dir=tmp_path / "uploads")


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def weather() -> FakeWeather:
    return FakeWeather()


@pytest.fixture
def image_host() -> FakeImageHost:
    return FakeImageHost()


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def generator(llm: ScriptedLLM, embedder: FakeEmbedder) -> GenerationAdapter:
    return GenerationAdapter(llm=llm, embedder=embedder)


@pytest.fixture
def recorder(hub: NotificationHub) -> EventRecorder:
    return EventRecorder(hub, "user-1")


@pytest.fixture
def make_crop_pipeline(
    store: SQLiteKnowledgeStore,
    generator: GenerationAdapter,
    weather: FakeWeather,
    image_host: FakeImageHost,
    hub: NotificationHub,
    tracker: ProgressTracker,
    temp_files: LocalTempFileStore,
) -> Callable[..., CropSuggestionPipeline]:
    def _make(**overrides: Any) -> CropSuggestionPipeline:
        options: dict[str, Any] = {
            "store": store,
            "generator": generator,
            "weather": weather,
            "image_host": image_host,
            "channel": PipelineChannel(hub, PipelineKind.CROP_SUGGESTION),
            "tracker": tracker,
            "runner": BackgroundTaskRunner(),
            "temp_files": temp_files,
            "retry_base_delay": 0.0,
        }
        options.update(overrides)
        return CropSuggestionPipeline(**options)

    return _make


@pytest.fixture
def make_disease_pipeline(
    store: SQLiteKnowledgeStore,
    generator: GenerationAdapter,
    image_host: FakeImageHost,
    hub: NotificationHub,
    tracker: ProgressTracker,
    temp_files: LocalTempFileStore,
) -> Callable[..., DiseaseDetectionPipeline]:
    def _make(**overrides: Any) -> DiseaseDetectionPipeline:
        options: dict[str, Any] = {
            "store": store,
            "generator": generator,
            "image_host": image_host,
            "channel": PipelineChannel(hub, PipelineKind.DISEASE_DETECTION),
            "tracker": tracker,
            "runner": BackgroundTaskRunner(),
            "temp_files": temp_files,
            "retry_base_delay": 0.0,
        }
        options.update(overrides)
        return DiseaseDetectionPipeline(**options)

    return _make


@pytest.fixture
def make_garden_planner(
    store: SQLiteKnowledgeStore,
    generator: GenerationAdapter,
    hub: NotificationHub,
) -> Callable[..., GardenPlanner]:
    def _make(**overrides: Any) -> GardenPlanner:
        options: dict[str, Any] = {
            "store": store,
            "generator": generator,
            "channel": PipelineChannel(hub, PipelineKind.CROP_SUGGESTION),
            "runner": BackgroundTaskRunner(),
            "retry_base_delay": 0.0,
        }
        options.update(overrides)
        return GardenPlanner(**options)

    return _make


@pytest.fixture
def suggestion_request() -> SuggestionRequest:
    return SuggestionRequest(
        user_id="user-1",
        plant_type="vegetable",
        garden_type="rooftop",
        gardener_type="beginner",
        city="Dhaka",
        country="Bangladesh",
    )


@pytest_asyncio.fixture
async def uploaded_image(temp_files: LocalTempFileStore) -> TempFileHandle:
    return await temp_files.store(PNG_BYTES, "leaf.png", "image/png")


@pytest_asyncio.fixture
async def detection_request(uploaded_image: TempFileHandle) -> DetectionRequest:
    return DetectionRequest(
        user_id="user-1",
        crop_name="Tomato",
        description="Brown spots on lower leaves",
        image=uploaded_image,
    )


@pytest.fixture
def tomato_summary() -> CropSummary:
    return CropSummary.model_validate_json(TOMATO_SUMMARY)


@pytest_asyncio.fixture
async def stored_tomato(store: SQLiteKnowledgeStore, tomato_summary: CropSummary) -> Crop:
    async with store.transaction() as tx:
        crop, _ = await tx.get_or_create_crop(tomato_summary, image_url="https://images.test/tomato.jpg")
    return crop


@pytest.fixture
def blight_profile() -> DiseaseProfile:
    return DiseaseProfile.model_validate_json(LEAF_BLIGHT_PROFILE)


@pytest.fixture(autouse=True)
def _uncached_loggers() -> None:
    """Loggers must not hold on to a per-test capture stream."""
    structlog.configure(cache_logger_on_first_use=False)
