"""
Trace Aggregation

Rolls every execution log sharing a trace id up into one TraceSummary
and a detailed trace.json document.

DESIGN RULES:
- Recomputed from scratch on each call (idempotent)
- Scoped to one tenant and project
- Detail blob path: traces/{tenant}/{YYYY-MM-DD}/{project}/{trace_id}/trace.json
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from storage.blob_store import BlobStore
from storage.models import ExecutionLog, TraceSummary, utc_now
from storage.repository import ExecutionLogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceStats:
    total_logs: int
    success_count: int
    error_count: int
    total_duration_ms: int
    first_log_at: Optional[datetime]
    last_log_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_logs": self.total_logs,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "total_duration_ms": self.total_duration_ms,
            "first_log_at": self.first_log_at.isoformat() if self.first_log_at else None,
            "last_log_at": self.last_log_at.isoformat() if self.last_log_at else None,
        }


def calculate_trace_stats(logs: List[ExecutionLog]) -> TraceStats:
    timestamps = [log.created_at for log in logs]
    success_count = sum(1 for log in logs if log.is_success)
    return TraceStats(
        total_logs=len(logs),
        success_count=success_count,
        error_count=len(logs) - success_count,
        total_duration_ms=sum(log.duration_ms or 0 for log in logs),
        first_log_at=min(timestamps) if timestamps else None,
        last_log_at=max(timestamps) if timestamps else None,
    )


def build_trace_path(tenant_id: int, project_id: int, trace_id: str, day: str) -> str:
    return f"traces/{tenant_id}/{day}/{project_id}/{trace_id}"


class TraceAggregator:
    """Builds trace summaries from the execution log repository."""

    def __init__(self, log_repository: ExecutionLogRepository, blob_store: BlobStore):
        self._log_repository = log_repository
        self._blob_store = blob_store

    async def extract_trace(self, tenant_id: int, project_id: int, trace_id: str) -> Optional[TraceSummary]:
        """
        Recompute and store the summary for one trace.

        Returns:
            The stored TraceSummary, or None when no logs carry the trace id
        """
        if not trace_id:
            logger.warning("[TRACE] No trace id provided, skipping trace extraction")
            return None

        logs = await self._log_repository.list_by_trace(tenant_id, project_id, trace_id)
        if not logs:
            logger.warning(f"[TRACE] No logs found for trace {trace_id}")
            return None

        logs.sort(key=lambda log: (log.created_at, log.id or 0))
        stats = calculate_trace_stats(logs)
        now = utc_now()
        trace_path = build_trace_path(tenant_id, project_id, trace_id, now.strftime("%Y-%m-%d"))

        document = {
            "trace_id": trace_id,
            "tenant_id": tenant_id,
            "project_id": project_id,
            "stats": stats.to_dict(),
            "logs": [self._log_entry(log) for log in logs],
            "extracted_at": now.isoformat(),
        }
        await self._blob_store.put(
            f"{trace_path}/trace.json",
            json.dumps(document, default=str, indent=2).encode("utf-8"),
        )

        summary = TraceSummary(
            tenant_id=tenant_id,
            project_id=project_id,
            trace_id=trace_id,
            total_logs=stats.total_logs,
            success_count=stats.success_count,
            error_count=stats.error_count,
            total_duration_ms=stats.total_duration_ms,
            first_log_at=stats.first_log_at,
            last_log_at=stats.last_log_at,
            trace_path=trace_path,
            updated_at=now,
        )
        await self._log_repository.upsert_trace(summary)

        logger.info(f"[TRACE] Processed trace {trace_id} with {stats.total_logs} logs")
        return summary

    @staticmethod
    def _log_entry(log: ExecutionLog) -> Dict[str, Any]:
        return {
            "id": log.id,
            "prompt_id": log.prompt_id,
            "version": log.version,
            "is_success": log.is_success,
            "error_message": log.error_message,
            "duration_ms": log.duration_ms,
            "log_path": log.log_path,
            "provider": log.provider,
            "model": log.model,
            "usage": log.usage,
            "created_at": log.created_at.isoformat(),
        }
