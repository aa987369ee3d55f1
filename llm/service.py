"""
Provider Service

Entry point for running a prompt against a named provider.

DESIGN RULES:
- Variables are substituted here, before the provider sees the messages
- Only messages containing a placeholder are rewritten
- Provider creation and model checks fail with ProviderError
"""

import logging
from typing import List, Optional

from llm.base import ProviderError
from llm.factory import ProviderConfig, ProviderFactory
from llm.models import get_google_models, get_openai_models
from llm.templating import has_placeholders, render
from observability.execution_logger import ExecutionLogger
from schemas.execution import ExecutionRequest, ExecutionResult
from schemas.prompt_body import Message
from schemas.response import ModelInfo, ProviderInfo
from storage.cache import KeyValueCache

logger = logging.getLogger(__name__)


class ProviderService:
    """Provider creation, model lists and prompt execution."""

    def __init__(
        self,
        config: ProviderConfig,
        execution_logger: ExecutionLogger,
        cache: Optional[KeyValueCache] = None,
        factory: Optional[ProviderFactory] = None,
    ):
        self._factory = factory or ProviderFactory(config, execution_logger, cache=cache)

    async def execute_prompt(self, provider_name: str, request: ExecutionRequest) -> ExecutionResult:
        """
        Execute a prompt with the named provider.

        Raises:
            ProviderError: unsupported provider/model, missing key, or a failed call
        """
        provider = self._factory.create_provider(provider_name)

        if not provider.is_model_supported(request.model):
            raise ProviderError(
                f"Model '{request.model}' is not supported by provider '{provider_name}'",
                provider=provider.provider_name,
            )

        if request.variables is not None:
            request = request.model_copy(
                update={"messages": self.substitute_variables(request)}
            )

        logger.info(
            f"[PROVIDER] Dispatching to {provider.provider_name}/{request.model} "
            f"({len(request.messages)} messages)"
        )
        return await provider.execute(request)

    @staticmethod
    def substitute_variables(request: ExecutionRequest) -> List[Message]:
        variables = request.variables or {}
        return [
            message.model_copy(update={"content": render(message.content, variables)})
            if has_placeholders(message.content)
            else message
            for message in request.messages
        ]

    def get_providers(self) -> List[ProviderInfo]:
        return [
            ProviderInfo(
                id="openai",
                name="OpenAI",
                description="GPT models including GPT-5, GPT-4.1, GPT-4o and the O-series",
                models=[ModelInfo(**model) for model in get_openai_models()],
            ),
            ProviderInfo(
                id="google",
                name="Google",
                description="Gemini Flash, Gemini Pro, and other Google models",
                models=[ModelInfo(**model) for model in get_google_models()],
            ),
        ]

    def is_provider_supported(self, provider_name: str) -> bool:
        return self._factory.is_provider_supported(provider_name)

    def supported_providers(self) -> List[str]:
        return self._factory.supported_providers()
