"""agroSage FastAPI application entry point.

Wires together all providers, pipelines, and routes via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``,
configures structured logging, and mounts the local media directory when
images are hosted on disk.

Every long-lived component (knowledge store, notification hub, progress
tracker, background runner, pipelines) is built once by :func:`_build_all`
and kept on ``app.state``.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.staticfiles import StaticFiles

from src.api.auth import resolve_auth_secret
from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_notifications
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.image_host import IImageHost
from src.interfaces.llm_provider import ILLMProvider
from src.models.pipeline import PipelineKind
from src.pipeline.crop_suggestion import CropSuggestionPipeline
from src.pipeline.disease_detection import DiseaseDetectionPipeline
from src.pipeline.garden import GardenPlanner
from src.pipeline.notification_hub import NotificationHub, PipelineChannel
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.task_queue import BackgroundTaskRunner
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.image_host.imagekit_image_host import ImageKitImageHost
from src.providers.image_host.local_image_host import LocalImageHost
from src.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.stock_image.pexels_provider import PexelsStockImageProvider
from src.providers.temp_files.local_temp_file_store import LocalTempFileStore
from src.providers.weather.open_meteo_provider import OpenMeteoWeatherProvider
from src.services.generation_adapter import GenerationAdapter
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

APP_VERSION = "0.1.0"

_SHUTDOWN_DRAIN_SECONDS = 30.0

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

Components = dict[str, Any]


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first available LLM provider based on configured API keys.

    Priority order: OpenAI (or OpenAI-compatible) -> Ollama.
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) -> Nomic via Ollama.
    """
    if app_settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    raise ConfigurationError(
        message="No embedding provider configured: set OPENAI_API_KEY or OLLAMA_BASE_URL",
    )


def _build_image_host(app_settings: Settings, http_client: httpx.AsyncClient) -> IImageHost:
    """ImageKit when a private key is configured, local disk otherwise."""
    if app_settings.imagekit_private_key:
        return ImageKitImageHost(settings=app_settings, http_client=http_client)
    return LocalImageHost(
        media_dir=app_settings.local_media_dir,
        base_url=app_settings.local_media_base_url,
    )


# ---------------------------------------------------------------------------
# Component graph
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict) -> Components:
    """Construct every provider, pipeline and service for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    pipeline_cfg = app_config["pipeline"]
    uploads_cfg = app_config["uploads"]
    cache_cfg = app_config["cache"]

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=30.0)
    cache = MemoryCacheProvider(
        max_size=cache_cfg["max_entries"],
        ttl=cache_cfg["weather_ttl_seconds"],
    )

    # -- Providers --
    llm = _build_llm_provider(app_settings)
    embedder = _build_embedding_provider(app_settings)
    generator = GenerationAdapter(llm=llm, embedder=embedder)

    knowledge_store = SQLiteKnowledgeStore(db_path=app_settings.knowledge_db_path)
    temp_files = LocalTempFileStore(
        upload_dir=app_settings.temp_upload_dir,
        max_size_mb=uploads_cfg["max_size_mb"],
        allowed_types=uploads_cfg["allowed_types"],
    )
    image_host = _build_image_host(app_settings, http_client)
    weather = OpenMeteoWeatherProvider(
        settings=app_settings,
        http_client=http_client,
        cache=cache,
        cache_ttl=cache_cfg["weather_ttl_seconds"],
    )
    stock_images = PexelsStockImageProvider(api_key=app_settings.pexels_api_key, http_client=http_client)

    # -- Run infrastructure --
    hub = NotificationHub()
    tracker = ProgressTracker()
    runner = BackgroundTaskRunner()

    shared = {
        "tracker": tracker,
        "runner": runner,
        "temp_files": temp_files,
        "max_generation_attempts": pipeline_cfg["max_generation_attempts"],
    }
    crop_channel = PipelineChannel(hub, PipelineKind.CROP_SUGGESTION)
    crop_pipeline = CropSuggestionPipeline(
        store=knowledge_store,
        generator=generator,
        weather=weather,
        image_host=image_host,
        stock_images=stock_images,
        similarity_threshold=pipeline_cfg["similarity_threshold"],
        forecast_days=pipeline_cfg["weather_forecast_days"],
        suggestion_count=pipeline_cfg["suggestion_count"],
        channel=crop_channel,
        **shared,
    )
    disease_pipeline = DiseaseDetectionPipeline(
        store=knowledge_store,
        generator=generator,
        image_host=image_host,
        similarity_threshold=pipeline_cfg["similarity_threshold"],
        channel=PipelineChannel(hub, PipelineKind.DISEASE_DETECTION),
        **shared,
    )
    garden_planner = GardenPlanner(
        store=knowledge_store,
        generator=generator,
        channel=crop_channel,
        runner=runner,
        max_generation_attempts=pipeline_cfg["max_generation_attempts"],
    )

    return {
        "settings": app_settings,
        "config": app_config,
        "auth_secret": resolve_auth_secret(app_settings),
        "http_client": http_client,
        "cache": cache,
        "knowledge_store": knowledge_store,
        "temp_files": temp_files,
        "image_host": image_host,
        "notification_hub": hub,
        "progress_tracker": tracker,
        "task_runner": runner,
        "crop_suggestion_pipeline": crop_pipeline,
        "disease_detection_pipeline": disease_pipeline,
        "garden_planner": garden_planner,
        "provider_names": {
            "llm": llm.get_provider_name(),
            "embedding": embedder.get_provider_name(),
            "image_host": image_host.get_provider_name(),
            "weather": weather.get_provider_name(),
            "stock_images": stock_images.get_provider_name(),
            "knowledge_store": "sqlite",
        },
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(
    app_settings: Settings,
    app_config: dict,
    build: Callable[[Settings, dict], Components],
):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Build all components on startup; drain runs and close clients on shutdown."""
        components = build(app_settings, app_config)
        for key, value in components.items():
            setattr(application.state, key, value)

        await components["knowledge_store"].initialize()

        _logger.info(
            "app_startup",
            version=APP_VERSION,
            environment=app_settings.app_env,
            providers=components.get("provider_names", {}),
        )

        yield

        still_running = await components["task_runner"].drain(timeout=_SHUTDOWN_DRAIN_SECONDS)
        http_client: httpx.AsyncClient | None = components.get("http_client")
        if http_client is not None:
            await http_client.aclose()
        _logger.info("app_shutdown", abandoned_runs=still_running)

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    app_config: dict | None = None,
    build: Callable[[Settings, dict], Components] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    app_settings:
        Settings to use; defaults to the module-level ``settings``.
    app_config:
        Resolved YAML config; defaults to the module-level ``config``.
    build:
        Component factory run at startup; defaults to :func:`_build_all`.
    """
    app_settings = app_settings or settings
    app_config = app_config or config

    application = FastAPI(
        title="agroSage API",
        version=APP_VERSION,
        description=(
            "AI crop suggestions and crop disease detection with a shared, "
            "deduplicated knowledge base and live progress notifications."
        ),
        lifespan=_make_lifespan(app_settings, app_config, build or _build_all),
    )

    # -- Middleware (last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=app_config["cors"]["allowed_origins"])

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/notifications")
    async def ws_notifications(websocket: WebSocket) -> None:
        await websocket_notifications(websocket)

    # -- Locally hosted images --
    if not app_settings.imagekit_private_key:
        application.mount(
            app_settings.local_media_base_url,
            StaticFiles(directory=app_settings.local_media_dir, check_dir=False),
            name="media",
        )

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
