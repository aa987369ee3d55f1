"""
Execution Logger

Per-request recorder for one prompt execution.

Collects the artifacts of a single call (variables, provider input,
raw provider output, normalized result, final response) plus its
outcome, then persists everything in one step on finish().

DESIGN RULES:
- One logger instance per request, never shared
- Lifecycle: UNINITIALIZED -> CONTEXTUALIZED -> RECORDED -> FINISHED
- Calls out of order raise LoggerStateError (programmer error)
- Artifact calls only buffer in memory; only finish() touches storage
- Immutable once FINISHED
"""

import json
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from observability.log_processing import LogQueue, LogQueueMessage
from observability.traceparent import TraceContext, generate_trace_id
from storage.blob_store import BlobStore
from storage.models import ExecutionLog, utc_now
from storage.repository import ExecutionLogRepository

logger = logging.getLogger(__name__)

ARTIFACT_NAMES = ("variables", "input", "output", "result", "response")


class LoggerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONTEXTUALIZED = "contextualized"
    RECORDED = "recorded"
    FINISHED = "finished"


class LoggerStateError(RuntimeError):
    """An ExecutionLogger method was called in the wrong lifecycle state."""


@dataclass(frozen=True)
class ExecutionContext:
    """
    Identity of the execution being logged.

    raw_trace_id is the inbound traceparent header as received;
    trace_context is its parsed form (None when absent or invalid).
    """

    tenant_id: int
    project_id: int
    prompt_id: int
    version: int
    raw_trace_id: Optional[str] = None
    trace_context: Optional[TraceContext] = None


def build_log_path(log: ExecutionLog) -> str:
    """logs/{tenant}/{YYYY-MM-DD}/{project}/{prompt}/{version}/{log_id}"""
    day = log.created_at.strftime("%Y-%m-%d")
    return (
        f"logs/{log.tenant_id}/{day}/{log.project_id}/"
        f"{log.prompt_id}/{log.version}/{log.id}"
    )


def _finite(payload: Any) -> Any:
    """Replace NaN and infinities with None so artifacts stay valid JSON."""
    if isinstance(payload, float) and not math.isfinite(payload):
        return None
    if isinstance(payload, dict):
        return {key: _finite(value) for key, value in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_finite(item) for item in payload]
    return payload


def _to_json_bytes(payload: Any) -> bytes:
    return json.dumps(
        _finite(payload), default=str, ensure_ascii=False, allow_nan=False, indent=2
    ).encode("utf-8")


class ExecutionLogger(ABC):
    """
    Abstract base for execution loggers.

    Owns the lifecycle and the in-memory buffer; subclasses decide what
    finish() does with it.

    Implementations:
    - PersistentExecutionLogger (row + blobs + log queue)
    - NullExecutionLogger (discards everything)
    """

    def __init__(self):
        self._state = LoggerState.UNINITIALIZED
        self._context: Optional[ExecutionContext] = None
        self._trace_id: Optional[str] = None
        self._artifacts: Dict[str, Any] = {}
        self._is_success: Optional[bool] = None
        self._duration_ms: int = 0
        self._error: Optional[str] = None
        self._started_at: Optional[datetime] = None

    # --- Introspection ---

    @property
    def state(self) -> LoggerState:
        return self._state

    @property
    def trace_id(self) -> Optional[str]:
        """Trace id in effect; None until set_context()."""
        return self._trace_id

    @property
    def context(self) -> Optional[ExecutionContext]:
        return self._context

    @property
    def started_at(self) -> Optional[datetime]:
        """When set_context() was called; becomes the row's created_at."""
        return self._started_at

    @property
    def is_recorded(self) -> bool:
        """Whether a success or failure outcome has been recorded."""
        return self._state in (LoggerState.RECORDED, LoggerState.FINISHED)

    @property
    def artifacts(self) -> Dict[str, Any]:
        return dict(self._artifacts)

    # --- Lifecycle ---

    def set_context(self, context: ExecutionContext) -> None:
        """
        Attach the execution identity.

        The trace id is the inbound one when the traceparent header was
        valid, otherwise a freshly generated one.
        """
        self._require(LoggerState.UNINITIALIZED, action="set_context")
        self._context = context
        self._started_at = utc_now()
        if context.trace_context is not None:
            self._trace_id = context.trace_context.trace_id
        else:
            self._trace_id = generate_trace_id()
        self._state = LoggerState.CONTEXTUALIZED

    def log_variables(self, variables: Dict[str, Any]) -> None:
        self._capture("variables", variables)

    def log_input(self, payload: Any) -> None:
        self._capture("input", payload)

    def log_output(self, payload: Any) -> None:
        self._capture("output", payload)

    def log_result(self, payload: Any) -> None:
        self._capture("result", payload)

    def log_response(self, payload: Any) -> None:
        self._capture("response", payload)

    def log_success(self, duration_ms: int) -> None:
        self._record(True, duration_ms, None)

    def log_failure(self, error: str, duration_ms: int = 0) -> None:
        self._record(False, duration_ms, error)

    async def finish(self) -> None:
        """
        Persist the execution. Allowed exactly once, after an outcome
        has been recorded.
        """
        self._require(LoggerState.RECORDED, action="finish")
        self._state = LoggerState.FINISHED
        await self._persist()

    @abstractmethod
    async def _persist(self) -> None:
        pass

    # --- Internals ---

    def _require(self, *allowed: LoggerState, action: str) -> None:
        if self._state not in allowed:
            expected = ", ".join(s.value for s in allowed)
            raise LoggerStateError(
                f"{action}() not allowed in state '{self._state.value}' (expected: {expected})"
            )

    def _capture(self, name: str, payload: Any) -> None:
        self._require(LoggerState.CONTEXTUALIZED, LoggerState.RECORDED, action=f"log_{name}")
        self._artifacts[name] = payload

    def _record(self, is_success: bool, duration_ms: int, error: Optional[str]) -> None:
        action = "log_success" if is_success else "log_failure"
        self._require(LoggerState.CONTEXTUALIZED, action=action)
        self._is_success = is_success
        self._duration_ms = max(int(duration_ms or 0), 0)
        self._error = error
        self._state = LoggerState.RECORDED


class PersistentExecutionLogger(ExecutionLogger):
    """
    Logger that writes a row, one blob per artifact, and a queue message.

    finish() order:
    1. Insert the ExecutionLog row (assigns the log id)
    2. Compute and store the log path
    3. Write metadata.json and every captured artifact
    4. Notify the log queue, if any
    """

    def __init__(
        self,
        log_repository: ExecutionLogRepository,
        blob_store: BlobStore,
        queue: Optional[LogQueue] = None,
    ):
        super().__init__()
        self._log_repository = log_repository
        self._blob_store = blob_store
        self._queue = queue
        self._log_id: Optional[int] = None
        self._log_path: Optional[str] = None

    @property
    def log_id(self) -> Optional[int]:
        """Row id, available once finish() has inserted the row."""
        return self._log_id

    @property
    def log_path(self) -> Optional[str]:
        return self._log_path

    async def _persist(self) -> None:
        ctx = self._context
        row = await self._log_repository.insert(
            ExecutionLog(
                tenant_id=ctx.tenant_id,
                project_id=ctx.project_id,
                prompt_id=ctx.prompt_id,
                version=ctx.version,
                is_success=bool(self._is_success),
                duration_ms=self._duration_ms,
                trace_id=self._trace_id,
                raw_trace_id=ctx.raw_trace_id,
                error_message=self._error,
                created_at=self._started_at,
            )
        )
        self._log_id = row.id
        self._log_path = build_log_path(row)
        await self._log_repository.set_log_path(row.id, self._log_path)

        await self._write_blob("metadata", self._metadata(row))
        for name in ARTIFACT_NAMES:
            if name in self._artifacts:
                await self._write_blob(name, self._artifacts[name])

        logger.info(
            f"[EXEC_LOG] Persisted log {row.id} "
            f"(success={row.is_success}, trace={self._trace_id}, path={self._log_path})"
        )

        if self._queue is not None:
            await self._queue.send(
                LogQueueMessage(
                    tenant_id=ctx.tenant_id,
                    project_id=ctx.project_id,
                    prompt_id=ctx.prompt_id,
                    version=ctx.version,
                    log_id=row.id,
                )
            )

    def _metadata(self, row: ExecutionLog) -> Dict[str, Any]:
        metadata = {
            "tenant_id": row.tenant_id,
            "project_id": row.project_id,
            "prompt_id": row.prompt_id,
            "version": row.version,
            "trace_id": row.trace_id,
            "timestamp": row.created_at.isoformat(),
            "duration_ms": row.duration_ms,
            "is_success": row.is_success,
        }
        if not row.is_success:
            metadata["error"] = row.error_message
        return metadata

    async def _write_blob(self, name: str, payload: Any) -> None:
        await self._blob_store.put(f"{self._log_path}/{name}.json", _to_json_bytes(payload))


class NullExecutionLogger(ExecutionLogger):
    """Logger that enforces the lifecycle but persists nothing."""

    async def _persist(self) -> None:
        return None
