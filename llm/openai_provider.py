"""
OpenAI Provider

Executes prompts through the OpenAI Responses API (openai SDK, async).

DESIGN RULES:
- system messages are sent with the "developer" role
- Structured output uses text.format = json_schema, otherwise text
- Reasoning effort/summary default to medium/auto
- Encrypted reasoning is included and responses are stored unless
  openai_settings turns them off
- No retries
"""

import logging
import time
from functools import lru_cache
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from llm.base import AIProvider, GatewayConfig, elapsed_ms
from observability.execution_logger import ExecutionLogger
from schemas.execution import ExecutionRequest, ExecutionResult, TokenUsage
from schemas.prompt_body import Message, OpenAISettings, ResponseFormat

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_NAME = "response"
DEFAULT_VERBOSITY = "medium"
DEFAULT_REASONING_EFFORT = "medium"
DEFAULT_REASONING_SUMMARY = "auto"
ENCRYPTED_REASONING = "reasoning.encrypted_content"
GATEWAY_PATH = "openai"


class OpenAIProvider(AIProvider):
    """Provider backed by client.responses.create()."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        execution_logger: ExecutionLogger,
        gateway: Optional[GatewayConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(api_key, execution_logger)
        self._gateway = gateway or GatewayConfig()
        self._client = client or get_client(api_key)

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        started_at = time.perf_counter()
        self._log_variables(request.variables)

        try:
            settings = self._validate_settings(OpenAISettings, request.provider_settings)
            payload = self.build_request_payload(request, settings)
            self._execution_logger.log_input(payload)

            client = self._get_client(request.proxy)
            call_started = time.perf_counter()
            response = await client.responses.create(**payload)
            duration_ms = elapsed_ms(call_started)

            result = ExecutionResult(
                content=self.extract_output_text(response),
                model=getattr(response, "model", None) or request.model,
                usage=self._extract_usage(response),
                duration_ms=duration_ms,
            )
        except Exception as e:
            raise self._fail(e, started_at) from e

        self._execution_logger.log_output(_dump(response))
        self._execution_logger.log_result(result.model_dump())
        self._execution_logger.log_success(duration_ms)

        logger.info(
            f"[OPENAI] {result.model} completed in {duration_ms}ms "
            f"({result.usage.total_tokens} tokens)"
        )
        return result

    # --- Payload ---

    def build_request_payload(self, request: ExecutionRequest, settings: OpenAISettings) -> Dict[str, Any]:
        """Exact keyword arguments passed to responses.create()."""
        return {
            "model": request.model,
            "input": self._build_input_messages(request.messages),
            "text": self._build_text_format(request.response_format),
            "reasoning": {
                "effort": settings.reasoning_effort or DEFAULT_REASONING_EFFORT,
                "summary": settings.reasoning_summary or DEFAULT_REASONING_SUMMARY,
            },
            "tools": [],
            "store": settings.store is not False,
            "include": [] if settings.include_encrypted_reasoning is False else [ENCRYPTED_REASONING],
        }

    @staticmethod
    def _build_input_messages(messages: List[Message]) -> List[Dict[str, Any]]:
        items = []
        for message in messages:
            if message.role == "assistant":
                content_type = "output_text"
            else:
                content_type = "input_text"
            items.append({
                "role": "developer" if message.role == "system" else message.role,
                "content": [{"type": content_type, "text": message.content}],
            })
        return items

    @staticmethod
    def _build_text_format(response_format: Optional[ResponseFormat]) -> Dict[str, Any]:
        if response_format is not None and response_format.type == "json_schema":
            schema = response_format.resolved_schema()
            if schema is not None:
                schema_spec = response_format.json_schema
                name = schema_spec.name if schema_spec is not None and schema_spec.name else DEFAULT_SCHEMA_NAME
                strict = schema_spec.strict if schema_spec is not None and schema_spec.strict is not None else True
                return {
                    "format": {
                        "type": "json_schema",
                        "name": name,
                        "strict": strict,
                        "schema": schema,
                    },
                    "verbosity": DEFAULT_VERBOSITY,
                }

        return {"format": {"type": "text"}, "verbosity": DEFAULT_VERBOSITY}

    # --- Response ---

    @staticmethod
    def extract_output_text(response: Any) -> str:
        """Text of the first output_text part of the first message item."""
        for item in getattr(response, "output", None) or []:
            if getattr(item, "type", None) != "message":
                continue
            for part in getattr(item, "content", None) or []:
                if getattr(part, "type", None) == "output_text":
                    return part.text or ""
            return ""
        return ""

    @staticmethod
    def _extract_usage(response: Any) -> TokenUsage:
        usage = getattr(response, "usage", None)
        if usage is None:
            return TokenUsage()

        prompt_tokens = usage.input_tokens or 0
        completion_tokens = usage.output_tokens or 0
        extras = {}
        input_details = getattr(usage, "input_tokens_details", None)
        if input_details is not None and getattr(input_details, "cached_tokens", None):
            extras["cached_tokens"] = input_details.cached_tokens
        output_details = getattr(usage, "output_tokens_details", None)
        if output_details is not None and getattr(output_details, "reasoning_tokens", None):
            extras["reasoning_tokens"] = output_details.reasoning_tokens

        return TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            **extras,
        )

    # --- Client ---

    def _get_client(self, proxy: Optional[str]) -> AsyncOpenAI:
        if not self._gateway.applies_to(proxy):
            return self._client
        logger.debug(f"[OPENAI] Routing through AI gateway at {self._gateway.base_url}")
        return get_client(self._api_key, self._gateway)


@lru_cache(maxsize=32)
def get_client(api_key: str, gateway: Optional[GatewayConfig] = None) -> AsyncOpenAI:
    """One AsyncOpenAI per API key and gateway, shared across requests."""
    if gateway is None:
        return AsyncOpenAI(api_key=api_key)
    return AsyncOpenAI(
        api_key=api_key,
        base_url=gateway.url_for(GATEWAY_PATH),
        default_headers=gateway.headers(),
    )


def _dump(response: Any) -> Any:
    if hasattr(response, "model_dump"):
        return response.model_dump(mode="json")
    return response

