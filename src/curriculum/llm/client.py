"""Client for the content-generation service.

The structural analyzer talks to the content-generation service through an
OpenAI-compatible chat endpoint: a local LM Studio server by default, or the
OpenAI API.

Supported providers:
- lmstudio: Local LM Studio server (OpenAI-compatible API)
- openai: OpenAI API
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from openai import OpenAI

from curriculum.config.app_config import AppConfig, load_app_config

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["lmstudio", "openai"]

# Provider-specific defaults
PROVIDER_DEFAULTS: dict[Provider, dict[str, Any]] = {
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
        "api_key": "lm-studio",  # LM Studio doesn't need a real key
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
    },
}

# Only OpenAI honours {"type": "json_object"}
PROVIDER_SUPPORTS_JSON_OBJECT: dict[Provider, bool] = {
    "lmstudio": False,
    "openai": True,
}

# Some local models wrap their answer in reasoning tags
SANITIZE_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]


def _sanitize_for_json(text: str) -> str:
    """Remove reasoning tags before JSON parsing."""
    result = text
    for pattern in SANITIZE_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for the content-generation client."""

    provider: Provider = "lmstudio"
    base_url: str = "http://localhost:1234/v1"
    model: str = "default"
    temperature: float = 0.3
    max_tokens: int = 4096
    timeout: int = 60
    api_key: str | None = None

    @classmethod
    def from_app_config(
        cls,
        app_config: AppConfig | None = None,
        provider: str | None = None,
    ) -> LLMConfig:
        """Build client configuration from the application config.

        Args:
            app_config: Loaded config (loads the default one if None)
            provider: Override of the configured default provider
        """
        app_config = app_config or load_app_config()
        provider = provider or app_config.llm.default_provider
        defaults = PROVIDER_DEFAULTS.get(provider, {})
        pconfig = app_config.providers.get(provider)

        api_key = pconfig.get_api_key() if pconfig else None
        if api_key is None:
            if "api_key_env" in defaults:
                api_key = os.environ.get(defaults["api_key_env"])
            else:
                api_key = defaults.get("api_key")

        base_url = (pconfig.base_url if pconfig else None) or defaults.get("base_url", "")

        return cls(
            provider=provider,
            base_url=base_url,
            model=pconfig.default_model if pconfig else "default",
            temperature=app_config.llm.temperature,
            max_tokens=app_config.llm.max_tokens,
            timeout=app_config.llm.timeout,
            api_key=api_key,
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from the content-generation service."""

    content: str
    model: str
    provider: Provider
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during a content-generation call."""

    pass


class LLMConnectionError(LLMError):
    """Error connecting to the service."""

    pass


class LLMResponseError(LLMError):
    """Error in the service response."""

    pass


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Unified client for the content-generation service."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        model: str | None = None,
    ):
        """Initialize client.

        Args:
            config: Client configuration (built from app config if not provided)
            model: Override model from config
        """
        if config is None:
            config = LLMConfig.from_app_config()

        self.config = config

        if model is not None:
            self.config.model = model

        self._client = OpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
        )

        logger.info(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send chat completion request.

        Raises:
            LLMConnectionError: If cannot connect to server
            LLMResponseError: If response is empty
            LLMError: Any other failure of the call
        """
        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if json_mode and PROVIDER_SUPPORTS_JSON_OBJECT.get(self.config.provider, False):
            request_kwargs["response_format"] = {"type": "json_object"}

        start_time = time.time()

        try:
            response = self._client.chat.completions.create(**request_kwargs)
        except Exception as e:
            error_msg = str(e)
            if "Connection" in error_msg or "connect" in error_msg.lower():
                raise LLMConnectionError(
                    f"Could not reach {self.config.provider} at {self.config.base_url}: {e}"
                ) from e
            raise LLMError(f"Content-generation call failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError("Empty response from content-generation service")

        content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    def _try_parse_json(self, content: str) -> dict[str, Any] | None:
        """Try to parse a JSON object from content.

        Tries, in order: direct parse, a ```json fenced block, the outermost
        {...} span. Returns None if all strategies fail or the value is not
        an object.
        """
        content = _sanitize_for_json(content)
        candidates = [content]

        fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
        if fenced:
            candidates.append(fenced.group(1).strip())

        start = content.find("{")
        end = content.rfind("}") + 1
        if start >= 0 and end > start:
            candidates.append(content[start:end])

        for candidate in candidates:
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed

        return None

    def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Send chat request expecting a JSON object.

        Raises:
            LLMResponseError: If response is not a valid JSON object
        """
        response = self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )

        parsed = self._try_parse_json(response.content)
        if parsed is None:
            raise LLMResponseError(
                f"Could not parse JSON from response: {response.content[:200]}..."
            )
        return parsed

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Single-turn chat expecting a JSON object."""
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]

        return self.chat_json(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def is_available(self) -> bool:
        """Check if the service responds."""
        try:
            self._client.models.list()
            return True
        except Exception:
            return False
