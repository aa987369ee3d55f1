"""
Provider Factory

Creates provider instances by name for one request.

DESIGN RULES:
- Provider names are case-insensitive
- Missing API keys and unknown names raise ProviderError
- Every provider gets the request's ExecutionLogger
"""

from dataclasses import dataclass, field
from typing import List, Optional

from llm.base import AIProvider, GatewayConfig, ProviderError
from llm.google_provider import CACHE_TTL_SECONDS, GoogleProvider
from llm.openai_provider import OpenAIProvider
from observability.execution_logger import ExecutionLogger
from storage.cache import KeyValueCache


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and shared settings for every provider."""

    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    gemini_cache_ttl_seconds: int = CACHE_TTL_SECONDS


class ProviderFactory:
    """Maps provider names onto AIProvider implementations."""

    SUPPORTED_PROVIDERS = ("openai", "google")

    def __init__(
        self,
        config: ProviderConfig,
        execution_logger: ExecutionLogger,
        cache: Optional[KeyValueCache] = None,
    ):
        self._config = config
        self._execution_logger = execution_logger
        self._cache = cache

    def create_provider(self, provider_name: str) -> AIProvider:
        """
        Create a provider instance.

        Raises:
            ProviderError: unknown provider or missing API key
        """
        name = (provider_name or "").lower()

        if name == "openai":
            if not self._config.openai_api_key:
                raise ProviderError(
                    "OpenAI API key not configured. Please set PROMPT_OBSERVATORY_OPENAI_API_KEY.",
                    provider=name,
                )
            return OpenAIProvider(
                self._config.openai_api_key,
                self._execution_logger,
                gateway=self._config.gateway,
            )

        if name == "google":
            if not self._config.gemini_api_key:
                raise ProviderError(
                    "Google Gemini API key not configured. Please set PROMPT_OBSERVATORY_GEMINI_API_KEY.",
                    provider=name,
                )
            return GoogleProvider(
                self._config.gemini_api_key,
                self._execution_logger,
                cache=self._cache,
                gateway=self._config.gateway,
                cache_ttl_seconds=self._config.gemini_cache_ttl_seconds,
            )

        raise ProviderError(
            f"Provider '{provider_name}' is not supported. "
            f"Supported providers: {', '.join(self.SUPPORTED_PROVIDERS)}"
        )

    def is_provider_supported(self, provider_name: str) -> bool:
        return (provider_name or "").lower() in self.SUPPORTED_PROVIDERS

    def supported_providers(self) -> List[str]:
        return list(self.SUPPORTED_PROVIDERS)
