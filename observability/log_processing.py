"""
Execution Log Processing

Post-finish work on a persisted execution log:
- Extract provider, model and token usage from input.json / output.json
- Index variables.json as path/value pairs for variable search
- Roll the log's trace up into a TraceSummary

Runs after the caller has already received its response, so nothing
here may affect a request outcome.

DESIGN RULES:
- Driven by LogQueueMessage (ids only, artifacts are re-read from blobs)
- Missing artifacts or unknown payload shapes are skipped with a warning
- The queue logs processing failures instead of raising them
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

from observability.trace_aggregation import TraceAggregator
from observability.variable_index import build_search_records
from storage.blob_store import BlobStore
from storage.models import ExecutionLog
from storage.repository import ExecutionLogRepository, VariableSearchRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogQueueMessage:
    """Notification that an execution log has been persisted."""

    tenant_id: int
    project_id: int
    prompt_id: int
    version: int
    log_id: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LogQueue(ABC):
    """
    Destination for LogQueueMessages.

    Implementations:
    - InProcessLogQueue (processes immediately in the current loop)
    """

    @abstractmethod
    async def send(self, message: LogQueueMessage) -> None:
        pass


def detect_provider(input_payload: Any) -> Optional[str]:
    """
    Identify the provider from the shape of the logged request.

    OpenAI requests carry input/text/reasoning,
    Google requests carry config/contents.
    """
    if not isinstance(input_payload, dict):
        return None
    if input_payload.get("input") and input_payload.get("text") and input_payload.get("reasoning"):
        return "openai"
    if input_payload.get("config") is not None and input_payload.get("contents"):
        return "google"
    return None


def extract_openai_usage(output: Any) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
    """Model and usage from a Responses API response document."""
    if not isinstance(output, dict):
        return None, None
    usage = output.get("usage") or {}
    input_details = usage.get("input_tokens_details") or {}
    output_details = usage.get("output_tokens_details") or {}
    return output.get("model"), {
        "input_tokens": usage.get("input_tokens") or 0,
        "cached_tokens": input_details.get("cached_tokens") or 0,
        "output_tokens": usage.get("output_tokens") or 0,
        "reasoning_tokens": output_details.get("reasoning_tokens") or 0,
        "total_tokens": usage.get("total_tokens") or 0,
    }


def extract_google_usage(output: Any) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
    """Model and usage from a list of streamed chunks (last values win)."""
    if not isinstance(output, list):
        return None, None

    model = None
    usage = None
    for chunk in output:
        if not isinstance(chunk, dict):
            continue
        if chunk.get("model_version"):
            model = chunk["model_version"]
        metadata = chunk.get("usage_metadata")
        if metadata:
            usage = {
                "prompt_tokens": metadata.get("prompt_token_count") or 0,
                "cached_tokens": metadata.get("cached_content_token_count") or 0,
                "response_tokens": metadata.get("candidates_token_count") or 0,
                "thoughts_tokens": metadata.get("thoughts_token_count") or 0,
                "tool_use_prompt_tokens": metadata.get("tool_use_prompt_token_count") or 0,
                "total_tokens": metadata.get("total_token_count") or 0,
            }
    return model, usage


_USAGE_EXTRACTORS = {
    "openai": extract_openai_usage,
    "google": extract_google_usage,
}


class ExecutionLogProcessor:
    """Usage extraction, variable indexing and trace aggregation for one persisted log."""

    def __init__(
        self,
        log_repository: ExecutionLogRepository,
        blob_store: BlobStore,
        trace_aggregator: Optional[TraceAggregator] = None,
        search_repository: Optional[VariableSearchRepository] = None,
    ):
        self._log_repository = log_repository
        self._blob_store = blob_store
        self._trace_aggregator = trace_aggregator
        self._search_repository = search_repository

    async def process(self, message: LogQueueMessage) -> None:
        """
        Process one log.

        Raises:
            LookupError: when the log does not exist for the tenant/project
        """
        log = await self._log_repository.get(message.tenant_id, message.project_id, message.log_id)
        if log is None:
            raise LookupError(
                f"Execution log {message.log_id} not found for tenant {message.tenant_id}"
            )

        if not log.log_path:
            logger.warning(f"[LOG_PROC] Execution log {log.id} has no log path, skipping processing")
            return

        await self.extract_usage_statistics(log)

        if self._search_repository is not None:
            await self.index_variables(log)

        if log.trace_id and self._trace_aggregator is not None:
            await self._trace_aggregator.extract_trace(log.tenant_id, log.project_id, log.trace_id)

    async def extract_usage_statistics(self, log: ExecutionLog) -> Optional[Dict[str, Any]]:
        """
        Store provider, model and usage on the log row.

        Returns the extracted usage, or None when it could not be determined.
        """
        output = await self._read_json(f"{log.log_path}/output.json")
        if output is None:
            return None
        input_payload = await self._read_json(f"{log.log_path}/input.json")
        if input_payload is None:
            return None

        provider = detect_provider(input_payload)
        if provider is None:
            logger.warning(f"[LOG_PROC] Could not determine provider for log {log.id}")
            return None

        model, usage = _USAGE_EXTRACTORS[provider](output)
        if not model or usage is None:
            logger.warning(f"[LOG_PROC] Missing model or usage in output.json for log {log.id}")
            return None

        await self._log_repository.set_usage(log.id, provider, model, usage)
        logger.info(f"[LOG_PROC] Updated usage statistics for log {log.id}: {provider}/{model}")
        return usage

    async def index_variables(self, log: ExecutionLog) -> int:
        """
        Index variables.json for variable search.

        Returns the number of indexed path/value pairs.
        """
        variables = await self._read_json(f"{log.log_path}/variables.json")
        if not isinstance(variables, dict):
            return 0

        records = build_search_records(log, variables)
        if not records:
            logger.warning(f"[LOG_PROC] No path-value pairs extracted from variables for log {log.id}")
            return 0

        await self._search_repository.insert_batch(records)
        logger.info(f"[LOG_PROC] Indexed {len(records)} path-value pairs for log {log.id}")
        return len(records)

    async def _read_json(self, key: str) -> Optional[Any]:
        data = await self._blob_store.get(key)
        if data is None:
            logger.warning(f"[LOG_PROC] No blob found at {key}, skipping")
            return None
        try:
            return json.loads(data)
        except ValueError as e:
            logger.error(f"[LOG_PROC] Invalid JSON in {key}: {e}")
            return None


class InProcessLogQueue(LogQueue):
    """
    Log queue that processes each message right away.

    Keeps a record of handled message ids for inspection.
    """

    def __init__(self, processor: ExecutionLogProcessor):
        self._processor = processor
        self._processed: List[int] = []

    @property
    def processed(self) -> List[int]:
        return list(self._processed)

    async def send(self, message: LogQueueMessage) -> None:
        try:
            await self._processor.process(message)
            self._processed.append(message.log_id)
        except Exception as e:
            logger.error(f"[LOG_PROC] Failed to process execution log {message.log_id}: {e}", exc_info=True)
