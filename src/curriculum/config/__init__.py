"""Configuration package for the curriculum pipeline."""

from curriculum.config.app_config import (
    AppConfig,
    IngestionSettings,
    LLMSettings,
    ProviderConfig,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "IngestionSettings",
    "LLMSettings",
    "ProviderConfig",
    "clear_config_cache",
    "get_provider_config",
    "load_app_config",
]
