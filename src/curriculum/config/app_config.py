"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file does not exist.

Usage:
    from curriculum.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("lmstudio")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")


@dataclass
class ProviderConfig:
    """Configuration for a single content-generation provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class LLMSettings:
    """Defaults for calls to the content-generation service."""

    default_provider: str = "lmstudio"
    temperature: float = 0.3
    max_tokens: int = 4096
    timeout: int = 60
    max_retries: int = 2
    retry_backoff_seconds: float = 1.0


@dataclass
class IngestionSettings:
    """Constants of the ingestion pipeline."""

    sample_pages: int = 15
    sample_char_budget: int = 12000
    sample_min_text_items: int = 30
    deep_index_min_text_items: int = 20
    ocr_scale: float = 2.0
    deep_index_chunk_size: int = 5
    deep_index_yield_seconds: float = 0.1


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    llm: LLMSettings = field(default_factory=LLMSettings)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def data_dir(self) -> Path:
        return Path(self.paths.get("data_dir", "data"))

    @property
    def db_path(self) -> Path:
        return Path(self.paths.get("db_path", "db/curriculum.db"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "lmstudio": {
                "base_url": "http://localhost:1234/v1",
                "default_model": "llama-3.2-3b-instruct",
                "api_key_env": None,
            },
            "openai": {
                "base_url": None,
                "default_model": "gpt-4o-mini",
                "api_key_env": "OPENAI_API_KEY",
            },
        },
        "llm": {
            "default_provider": "lmstudio",
            "temperature": 0.3,
            "max_tokens": 4096,
            "timeout": 60,
            "max_retries": 2,
            "retry_backoff_seconds": 1.0,
        },
        "ingestion": {
            "sample_pages": 15,
            "sample_char_budget": 12000,
            "sample_min_text_items": 30,
            "deep_index_min_text_items": 20,
            "ocr_scale": 2.0,
            "deep_index_chunk_size": 5,
            "deep_index_yield_seconds": 0.1,
        },
        "paths": {
            "data_dir": "data",
            "db_path": "db/curriculum.db",
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object.

    Missing sections or keys fall back to the defaults.
    """
    defaults = _get_defaults()

    providers = {}
    for name, pconfig in (data.get("providers") or defaults["providers"]).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
        )

    llm_data = {**defaults["llm"], **(data.get("llm") or {})}
    llm = LLMSettings(
        default_provider=llm_data["default_provider"],
        temperature=float(llm_data["temperature"]),
        max_tokens=int(llm_data["max_tokens"]),
        timeout=int(llm_data["timeout"]),
        max_retries=int(llm_data["max_retries"]),
        retry_backoff_seconds=float(llm_data["retry_backoff_seconds"]),
    )

    ingestion_data = {**defaults["ingestion"], **(data.get("ingestion") or {})}
    ingestion = IngestionSettings(
        sample_pages=int(ingestion_data["sample_pages"]),
        sample_char_budget=int(ingestion_data["sample_char_budget"]),
        sample_min_text_items=int(ingestion_data["sample_min_text_items"]),
        deep_index_min_text_items=int(ingestion_data["deep_index_min_text_items"]),
        ocr_scale=float(ingestion_data["ocr_scale"]),
        deep_index_chunk_size=int(ingestion_data["deep_index_chunk_size"]),
        deep_index_yield_seconds=float(ingestion_data["deep_index_yield_seconds"]),
    )

    paths = {**defaults["paths"], **(data.get("paths") or {})}

    return AppConfig(providers=providers, llm=llm, ingestion=ingestion, paths=paths)


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, using defaults when no file is present.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "lmstudio", "openai")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
