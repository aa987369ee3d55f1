# LLM Package
from llm.base import AIProvider, GatewayConfig, ProviderError
from llm.factory import ProviderConfig, ProviderFactory
from llm.google_provider import GoogleProvider
from llm.openai_provider import OpenAIProvider
from llm.service import ProviderService

__all__ = [
    "AIProvider",
    "GatewayConfig",
    "ProviderError",
    "ProviderConfig",
    "ProviderFactory",
    "GoogleProvider",
    "OpenAIProvider",
    "ProviderService",
]
