"""Public interface definitions for all external service providers.

Every external API, model host and storage backend used by the agroSage
pipelines is reached through one of the abstract base classes defined in
this package.  Concrete adapters live in ``src/providers/`` and are chosen
in ``src/main.py`` at startup, so tests can inject fakes without touching
business logic.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider               →  OpenAILLMProvider, OllamaLLMProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider,
                                  NomicEmbeddingProvider
    IKnowledgeStore            →  SQLiteKnowledgeStore
    IWeatherProvider           →  OpenMeteoWeatherProvider
    IImageHost                 →  ImageKitImageHost, LocalImageHost
    IStockImageProvider        →  PexelsStockImageProvider
    ITempFileStore             →  LocalTempFileStore
    ICacheProvider             →  MemoryCacheProvider
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.image_host import IImageHost
from src.interfaces.knowledge_store import IKnowledgeStore, IKnowledgeTransaction
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.stock_image_provider import IStockImageProvider
from src.interfaces.temp_file_store import ITempFileStore
from src.interfaces.weather_provider import IWeatherProvider

__all__ = [
    "ICacheProvider",
    "IEmbeddingProvider",
    "IImageHost",
    "IKnowledgeStore",
    "IKnowledgeTransaction",
    "ILLMProvider",
    "IStockImageProvider",
    "ITempFileStore",
    "IWeatherProvider",
]
