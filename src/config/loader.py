"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

1. ``config/config.yaml`` -- static pipeline tunables checked into the repo
2. ``.env`` file / environment variables -- read through :class:`Settings`

:func:`load_config` reads the YAML file, fills in defaults for anything
missing, then deep-merges the env-derived values on top.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings

_DEFAULTS: dict = {
    "pipeline": {
        "max_generation_attempts": 2,
        "similarity_threshold": None,
        "weather_forecast_days": 16,
        "suggestion_count": 16,
    },
    "uploads": {
        "max_size_mb": 5,
        "allowed_types": ["image/jpeg", "image/png", "image/jpg"],
    },
    "cache": {
        "weather_ttl_seconds": 3600,
        "max_entries": 512,
    },
    "cors": {
        "allowed_origins": ["*"],
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to take overrides from. A fresh one is
                  built when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config: dict = {}
    _deep_merge(config, _DEFAULTS)

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
        },
        "storage": {
            "knowledge_db_path": settings.knowledge_db_path,
            "temp_upload_dir": settings.temp_upload_dir,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        elif isinstance(value, dict):
            base[key] = {}
            _deep_merge(base[key], value)
        else:
            base[key] = value
