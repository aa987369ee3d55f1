"""
Provider Contract

Uniform interface every AI vendor integration implements.

DESIGN RULES:
- One shared request shape (ExecutionRequest) for all vendors
- Vendor-specific settings arrive as an opaque mapping and are
  validated only by the provider that owns them
- Providers log variables, input, output, result and the outcome
  through the per-request ExecutionLogger
- Vendor and network failures surface as ProviderError
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from observability.execution_logger import ExecutionLogger
from schemas.execution import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)

SettingsT = TypeVar("SettingsT", bound=BaseModel)


class ProviderError(Exception):
    """A provider call failed; the message is the vendor's, verbatim."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider


class AIProvider(ABC):
    """
    Abstract base for AI providers.

    Implementations:
    - OpenAIProvider (Responses API)
    - GoogleProvider (Gemini, streaming)
    """

    def __init__(self, api_key: str, execution_logger: ExecutionLogger):
        if not api_key:
            raise ProviderError("API key is required")
        self._api_key = api_key
        self._execution_logger = execution_logger

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    def is_model_supported(self, model: str) -> bool:
        """Basic validation; any non-empty model id is accepted."""
        return bool(model and model.strip())

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Execute a prompt with the provider.

        Args:
            request: Normalized request with variables already substituted

        Returns:
            ExecutionResult with content, model, usage and duration_ms

        Raises:
            ProviderError: on any vendor or network failure
        """
        pass

    # --- Shared helpers ---

    def _validate_settings(self, model_cls: Type[SettingsT], raw: Dict[str, Any]) -> SettingsT:
        try:
            return model_cls.model_validate(raw or {})
        except ValidationError as e:
            raise ProviderError(
                f"Invalid {self.provider_name} settings: {e.errors(include_url=False)}",
                provider=self.provider_name,
            ) from e

    def _log_variables(self, variables: Optional[Dict[str, Any]]) -> None:
        if variables is not None:
            self._execution_logger.log_variables(variables)

    def _fail(self, error: Exception, started_at: float) -> ProviderError:
        """Record a failed call and wrap the error for the caller."""
        duration_ms = elapsed_ms(started_at)
        message = error.message if isinstance(error, ProviderError) else str(error)
        logger.error(f"[{self.provider_name.upper()}] Execution failed after {duration_ms}ms: {message}")
        self._execution_logger.log_failure(message, duration_ms)
        if isinstance(error, ProviderError):
            return error
        return ProviderError(message, provider=self.provider_name)


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a time.perf_counter() reading."""
    return int((time.perf_counter() - started_at) * 1000)


@dataclass(frozen=True)
class GatewayConfig:
    """
    AI gateway (proxy) settings.

    Requests whose prompt body sets proxy="cloudflare" are sent through
    the gateway when both values are configured.
    """

    base_url: Optional[str] = None
    token: Optional[str] = None

    PROXY_MODE = "cloudflare"

    def applies_to(self, proxy: Optional[str]) -> bool:
        return proxy == self.PROXY_MODE and bool(self.base_url) and bool(self.token)

    def url_for(self, suffix: str) -> str:
        return f"{(self.base_url or '').rstrip('/')}/{suffix}"

    def headers(self) -> Dict[str, str]:
        return {"cf-aig-authorization": f"Bearer {self.token}"}
