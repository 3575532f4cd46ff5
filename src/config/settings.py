"""Application settings loaded from environment variables via pydantic-settings.

Values are read from (highest priority first):

1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``
2. **.env file** -- ``key=value`` lines in the project root, for local
   development only (never committed).

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults are
used when neither source sets a field.  An empty string means "not
configured"; the builders in ``src/main.py`` fall through to the next
provider in that case.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """agroSage application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / Embedding Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, Groq, ...)
    openai_text_model: str = ""
    openai_vision_model: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = "llama3.1"
    ollama_vision_model: str = "llava"

    # === Image Hosting ===
    imagekit_private_key: str = ""
    imagekit_upload_url: str = "https://upload.imagekit.io/api/v1/files/upload"
    imagekit_api_url: str = "https://api.imagekit.io/v1"
    local_media_dir: str = "data/media"  # used when ImageKit is not configured
    local_media_base_url: str = "/media"

    # === Stock Images ===
    pexels_api_key: str = ""

    # === Weather ===
    open_meteo_forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    open_meteo_geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"

    # === Storage ===
    knowledge_db_path: str = "data/knowledge.db"
    temp_upload_dir: str = "temp-uploads"

    # === Auth ===
    auth_secret: str = ""
    auth_token_ttl_hours: int = 168

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the LLM provider names that are configured, in priority order."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
