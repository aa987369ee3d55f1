"""
Prompt Executor

The engine behind the execute endpoint.

Flow per request:
1. Resolve project, prompt and active version for the tenant
2. Parse the inbound traceparent and open the execution log
3. Parse the stored prompt body
4. Dispatch to the prompt's provider through ProviderService
5. Normalize the output, log the response, schedule finalization

DESIGN RULES:
- One executor per request (the logger is per request)
- Lookup failures (step 1) are not logged as executions
- Once the log is open every outcome is recorded and finish() scheduled
- Finalization never blocks or changes the response
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from llm.base import ProviderError
from llm.service import ProviderService
from observability import traceparent
from observability.execution_logger import ExecutionContext, ExecutionLogger
from observability.scheduler import Scheduler
from orchestration.errors import (
    DataCorruptionError,
    HttpError,
    InternalServerError,
    InvalidStateError,
    NotFoundError,
)
from orchestration.resolver import EntityRef, EntityResolver
from schemas.execution import ExecutionRequest
from schemas.prompt_body import PromptBody, ResponseFormat
from schemas.response import ExecutePromptResponse
from storage.models import Project, Prompt, PromptVersion

logger = logging.getLogger(__name__)


class PromptExecutor:
    """Executes the active version of a stored prompt."""

    def __init__(
        self,
        resolver: EntityResolver,
        provider_service: ProviderService,
        execution_logger: ExecutionLogger,
        scheduler: Scheduler,
    ):
        self._resolver = resolver
        self._provider_service = provider_service
        self._execution_logger = execution_logger
        self._scheduler = scheduler

    async def execute(
        self,
        tenant_id: int,
        project_ref: EntityRef,
        prompt_ref: EntityRef,
        variables: Optional[Dict[str, Any]] = None,
        traceparent_header: Optional[str] = None,
    ) -> ExecutePromptResponse:
        """
        Execute a prompt and return its (normalized) output.

        Raises:
            HttpError: mapped to the response status by the API layer
        """
        project, prompt, version = await self._resolve(tenant_id, project_ref, prompt_ref)

        trace_context = traceparent.parse(traceparent_header)
        self._execution_logger.set_context(
            ExecutionContext(
                tenant_id=tenant_id,
                project_id=project.id,
                prompt_id=prompt.id,
                version=version.version,
                raw_trace_id=traceparent_header,
                trace_context=trace_context,
            )
        )
        logger.info(
            f"[EXECUTOR] Executing {project.slug}/{prompt.slug} v{version.version} "
            f"via {version.provider}/{version.model} (trace={self._execution_logger.trace_id})"
        )

        try:
            body = self._parse_body(version.body)
            if not body.messages:
                raise InvalidStateError("No messages found in prompt body")

            result = await self._provider_service.execute_prompt(
                version.provider,
                ExecutionRequest(
                    model=version.model,
                    messages=body.messages,
                    variables=variables,
                    response_format=body.response_format,
                    provider_settings=body.settings_for(version.provider),
                    proxy=body.proxy,
                    project_id=project.id,
                    prompt_slug=prompt.slug,
                    prompt_version=version.version,
                ),
            )
            response = self.normalize_output(result.content, body.response_format)
            self._execution_logger.log_response({"response": response})
        except HttpError as e:
            await self._finish_failed(e.message)
            raise
        except ProviderError as e:
            await self._finish_failed(e.message)
            raise InternalServerError(e.message) from e
        except Exception as e:
            logger.exception(f"[EXECUTOR] Unexpected failure executing prompt {prompt.id}")
            await self._finish_failed(str(e))
            raise InternalServerError(str(e)) from e

        await self._scheduler.schedule(self._execution_logger.finish(), name="execution-log finish")
        return ExecutePromptResponse(response=response)

    async def _resolve(
        self, tenant_id: int, project_ref: EntityRef, prompt_ref: EntityRef
    ) -> Tuple[Project, Prompt, PromptVersion]:
        project = await self._resolver.resolve_project(tenant_id, project_ref)
        if project is None:
            raise NotFoundError("Project not found")

        prompt = await self._resolver.resolve_prompt(tenant_id, project.id, prompt_ref)
        if prompt is None:
            raise NotFoundError("Prompt not found")
        if not prompt.is_active:
            raise InvalidStateError("Prompt is not active")

        version = await self._resolver.resolve_active_version(tenant_id, project.id, prompt.id)
        if version is None:
            raise NotFoundError("No active version found for prompt")

        return project, prompt, version

    @staticmethod
    def _parse_body(raw: str) -> PromptBody:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("prompt body is not a JSON object")
            return PromptBody.model_validate(data)
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"[EXECUTOR] Invalid prompt body: {e}")
            raise DataCorruptionError("Invalid prompt body format") from e

    @staticmethod
    def normalize_output(content: str, response_format: Optional[ResponseFormat]) -> Any:
        """Parse JSON output when structured output was requested."""
        if response_format is None or not response_format.is_structured:
            return content
        try:
            return json.loads(content, parse_constant=_reject_constant)
        except (ValueError, TypeError):
            logger.warning("[EXECUTOR] Structured output requested but content is not valid JSON")
            return content

    async def _finish_failed(self, message: str) -> None:
        if not self._execution_logger.is_recorded:
            self._execution_logger.log_failure(message, 0)
        await self._scheduler.schedule(self._execution_logger.finish(), name="execution-log finish")


def _reject_constant(name: str) -> Any:
    # NaN / Infinity / -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")
