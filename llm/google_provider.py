"""
Google Provider

Executes prompts against Gemini models with the google-genai SDK,
using the async streaming generate call.

DESIGN RULES:
- system messages become one system_instruction; assistant -> "model"
- A prompt made only of system messages is sent as a single user turn
- Structured output: response_mime_type=application/json (+ schema)
- The system instruction can be moved into a Gemini context cache,
  whose name is remembered in the key/value cache for CACHE_TTL_SECONDS,
  keyed by prompt version and a hash of the substituted instruction
- Cache problems fall back to the inline system instruction
"""

import hashlib
import logging
import time
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from google import genai
from google.genai import types

from llm.base import AIProvider, GatewayConfig, elapsed_ms
from observability.execution_logger import ExecutionLogger
from schemas.execution import ExecutionRequest, ExecutionResult, TokenUsage
from schemas.prompt_body import GoogleSettings, Message, ResponseFormat
from storage.cache import KeyValueCache

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600
JSON_MIME_TYPE = "application/json"
THINKING_LEVEL_UNSPECIFIED = "THINKING_LEVEL_UNSPECIFIED"
GATEWAY_PATH = "google-ai-studio"

Content = Dict[str, Any]


def context_cache_key(project_id: int, prompt_slug: str, version: int, system_instruction: str) -> str:
    """Cache entries are per published version and per substituted instruction."""
    digest = hashlib.sha256(system_instruction.encode("utf-8")).hexdigest()[:16]
    return f"gemini_cache_{project_id}__{prompt_slug}__v{version}__{digest}"


class GoogleProvider(AIProvider):
    """Provider backed by client.aio.models.generate_content_stream()."""

    provider_name = "google"

    def __init__(
        self,
        api_key: str,
        execution_logger: ExecutionLogger,
        cache: Optional[KeyValueCache] = None,
        gateway: Optional[GatewayConfig] = None,
        client: Optional[genai.Client] = None,
        cache_ttl_seconds: int = CACHE_TTL_SECONDS,
    ):
        super().__init__(api_key, execution_logger)
        self._cache = cache
        self._gateway = gateway or GatewayConfig()
        self._client = client or get_client(api_key)
        self._cache_ttl_seconds = cache_ttl_seconds

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        started_at = time.perf_counter()
        self._log_variables(request.variables)

        try:
            settings = self._validate_settings(GoogleSettings, request.provider_settings)
            system_instruction, contents = self.build_contents(request.messages)
            cached_content = await self._get_cached_content_name(request, settings, system_instruction)
            config = self.build_generation_config(
                request.response_format, settings, system_instruction, cached_content
            )
            self._execution_logger.log_input({
                "model": request.model,
                "config": config,
                "contents": contents,
            })

            client = self._get_client(request.proxy)
            call_started = time.perf_counter()
            stream = await client.aio.models.generate_content_stream(
                model=request.model,
                contents=contents,
                config=config,
            )
            output_text, chunks, usage_metadata = await self._collect_stream(stream)
            duration_ms = elapsed_ms(call_started)

            result = ExecutionResult(
                content=output_text,
                model=request.model,
                usage=self._build_usage(usage_metadata),
                duration_ms=duration_ms,
            )
        except Exception as e:
            raise self._fail(e, started_at) from e

        self._execution_logger.log_output(chunks)
        self._execution_logger.log_result(result.model_dump())
        self._execution_logger.log_success(duration_ms)

        logger.info(
            f"[GOOGLE] {result.model} completed in {duration_ms}ms "
            f"({len(chunks)} chunks, {result.usage.total_tokens} tokens)"
        )
        return result

    # --- Request ---

    @staticmethod
    def build_contents(messages: List[Message]) -> Tuple[str, List[Content]]:
        """
        Split messages into (system_instruction, contents).

        The returned system instruction is already trimmed; it is empty
        when it had to be sent as the only user turn.
        """
        system_instruction = ""
        contents: List[Content] = []

        for message in messages:
            if message.role == "system":
                system_instruction += message.content + "\n\n"
            elif message.role == "user":
                contents.append({"role": "user", "parts": [{"text": message.content}]})
            elif message.role == "assistant":
                contents.append({"role": "model", "parts": [{"text": message.content}]})

        if not contents and system_instruction:
            contents.append({"role": "user", "parts": [{"text": system_instruction}]})
            system_instruction = ""

        return system_instruction.strip(), contents

    @staticmethod
    def build_generation_config(
        response_format: Optional[ResponseFormat],
        settings: GoogleSettings,
        system_instruction: str,
        cached_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        config: Dict[str, Any] = {}

        if cached_content:
            config["cached_content"] = cached_content
        elif system_instruction:
            config["system_instruction"] = system_instruction

        if response_format is not None and response_format.is_structured:
            config["response_mime_type"] = JSON_MIME_TYPE
            schema = response_format.resolved_schema()
            if schema is not None:
                config["response_json_schema"] = schema

        thinking_config: Dict[str, Any] = {}
        if settings.include_thoughts is not None:
            thinking_config["include_thoughts"] = settings.include_thoughts
        if settings.thinking_budget:
            thinking_config["thinking_budget"] = settings.thinking_budget
        elif settings.thinking_level and settings.thinking_level != THINKING_LEVEL_UNSPECIFIED:
            thinking_config["thinking_level"] = settings.thinking_level
        if thinking_config:
            config["thinking_config"] = thinking_config

        if settings.google_search_enabled:
            config["tools"] = [{"google_search": {}}]

        return config

    # --- Context cache ---

    async def _get_cached_content_name(
        self,
        request: ExecutionRequest,
        settings: GoogleSettings,
        system_instruction: str,
    ) -> Optional[str]:
        if (
            not settings.cache_system_message
            or not system_instruction
            or self._cache is None
            or not request.project_id
            or not request.prompt_slug
            or request.prompt_version is None
        ):
            return None

        key = context_cache_key(
            request.project_id, request.prompt_slug, request.prompt_version, system_instruction
        )
        try:
            name = await self._cache.get(key)
            if name:
                return name

            cached = await self._client.aio.caches.create(
                model=request.model,
                config={
                    "system_instruction": system_instruction,
                    "display_name": key,
                    "ttl": f"{self._cache_ttl_seconds}s",
                },
            )
            if not cached.name:
                return None
            await self._cache.put(key, cached.name, ttl_seconds=self._cache_ttl_seconds)
            logger.info(f"[GOOGLE] Created context cache {cached.name} for {key}")
            return cached.name
        except Exception as e:
            logger.warning(f"[GOOGLE] Context cache unavailable for {key}, sending inline: {e}")
            return None

    # --- Response ---

    @staticmethod
    async def _collect_stream(stream) -> Tuple[str, List[Dict[str, Any]], Any]:
        output_text = ""
        chunks: List[Dict[str, Any]] = []
        usage_metadata = None

        async for chunk in stream:
            chunks.append(chunk.model_dump(mode="json", exclude_none=True))
            if chunk.text:
                output_text += chunk.text
            if chunk.usage_metadata is not None:
                usage_metadata = chunk.usage_metadata

        return output_text, chunks, usage_metadata

    @staticmethod
    def _build_usage(usage_metadata: Optional[types.GenerateContentResponseUsageMetadata]) -> TokenUsage:
        if usage_metadata is None:
            return TokenUsage()

        extras = {
            "thoughts_tokens": usage_metadata.thoughts_token_count,
            "tool_use_prompt_tokens": usage_metadata.tool_use_prompt_token_count,
            "cached_content_tokens": usage_metadata.cached_content_token_count,
        }
        return TokenUsage(
            prompt_tokens=usage_metadata.prompt_token_count or 0,
            completion_tokens=usage_metadata.candidates_token_count or 0,
            total_tokens=usage_metadata.total_token_count or 0,
            **{name: count for name, count in extras.items() if count is not None},
        )

    # --- Client ---

    def _get_client(self, proxy: Optional[str]) -> genai.Client:
        if not self._gateway.applies_to(proxy):
            return self._client
        logger.debug(f"[GOOGLE] Routing through AI gateway at {self._gateway.base_url}")
        return get_client(self._api_key, self._gateway)


@lru_cache(maxsize=32)
def get_client(api_key: str, gateway: Optional[GatewayConfig] = None) -> genai.Client:
    """One genai.Client per API key and gateway, shared across requests."""
    if gateway is None:
        return genai.Client(api_key=api_key)
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(
            base_url=gateway.url_for(GATEWAY_PATH),
            headers=gateway.headers(),
        ),
    )
