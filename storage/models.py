"""
Storage Models

Records held by the catalog and execution-log repositories.

DESIGN RULES:
- Plain data, no business logic
- Catalog records are immutable snapshots
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Tenant:
    id: int
    is_active: bool = True
    api_keys: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Project:
    id: int
    tenant_id: int
    name: str
    slug: str
    is_active: bool = True


@dataclass(frozen=True)
class Prompt:
    id: int
    tenant_id: int
    project_id: int
    name: str
    slug: str
    provider: str
    model: str
    latest_version: int = 1
    is_active: bool = True


@dataclass(frozen=True)
class PromptVersion:
    """
    Published snapshot of a prompt.

    `body` is the raw JSON text holding messages, response_format,
    provider settings and proxy mode. It is parsed at execution time.
    """

    tenant_id: int
    project_id: int
    prompt_id: int
    version: int
    name: str
    slug: str
    provider: str
    model: str
    body: str = "{}"
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class PromptRouter:
    """Active-version pointer for a prompt."""

    tenant_id: int
    project_id: int
    prompt_id: int
    version: int


@dataclass
class ExecutionLog:
    """
    One row per prompt execution.

    Large payloads (variables, input, output, result, response) live in
    blob storage under `log_path`, not in the row.
    """

    tenant_id: int
    project_id: int
    prompt_id: int
    version: int
    is_success: bool
    duration_ms: int
    trace_id: Optional[str] = None
    raw_trace_id: Optional[str] = None
    error_message: Optional[str] = None
    log_path: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=utc_now)
    id: Optional[int] = None


@dataclass
class TraceSummary:
    """Aggregated statistics for every log sharing one trace id."""

    tenant_id: int
    project_id: int
    trace_id: str
    total_logs: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: int = 0
    first_log_at: Optional[datetime] = None
    last_log_at: Optional[datetime] = None
    trace_path: Optional[str] = None
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class VariableSearchRecord:
    """One flattened variable (path + searchable text) of an execution log."""

    tenant_id: int
    project_id: int
    prompt_id: int
    log_id: int
    variable_path: str
    variable_value: str
    created_at: datetime = field(default_factory=utc_now)
