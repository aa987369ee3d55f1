"""
In-Memory Repositories

Process-local implementations of the repository interfaces.

DESIGN RULES:
- No long-term persistence
- Thread-safe for concurrent access
- Returned rows are copies; callers cannot mutate stored state
"""

import itertools
from dataclasses import replace
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

from storage.models import (
    ExecutionLog,
    Project,
    Prompt,
    PromptRouter,
    PromptVersion,
    Tenant,
    TraceSummary,
    VariableSearchRecord,
)
from storage.repository import CatalogRepository, ExecutionLogRepository, VariableSearchRepository


class InMemoryCatalog(CatalogRepository):
    """
    In-memory catalog of tenants, projects, prompts and versions.

    Writes (add_*) are used by seeding and tests; the execution
    pipeline only reads.
    """

    def __init__(self):
        self._tenants: Dict[int, Tenant] = {}
        self._api_keys: Dict[str, int] = {}
        self._projects: Dict[int, Project] = {}
        self._prompts: Dict[int, Prompt] = {}
        self._routers: Dict[Tuple[int, int, int], PromptRouter] = {}
        self._versions: Dict[Tuple[int, int, int, int], PromptVersion] = {}
        self._lock = Lock()

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._tenants

    # --- Writes ---

    def add_tenant(self, tenant: Tenant) -> Tenant:
        with self._lock:
            self._tenants[tenant.id] = tenant
            for key in tenant.api_keys:
                self._api_keys[key] = tenant.id
        return tenant

    def add_project(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.id] = project
        return project

    def add_prompt(self, prompt: Prompt) -> Prompt:
        with self._lock:
            self._prompts[prompt.id] = prompt
        return prompt

    def add_version(self, version: PromptVersion) -> PromptVersion:
        key = (version.tenant_id, version.project_id, version.prompt_id, version.version)
        with self._lock:
            if key in self._versions:
                raise ValueError(
                    f"Version {version.version} of prompt {version.prompt_id} already exists"
                )
            self._versions[key] = version
        return version

    def set_router(self, router: PromptRouter) -> PromptRouter:
        with self._lock:
            self._routers[(router.tenant_id, router.project_id, router.prompt_id)] = router
        return router

    # --- Reads ---

    async def get_tenant_by_api_key(self, api_key: str) -> Optional[Tenant]:
        with self._lock:
            tenant_id = self._api_keys.get(api_key)
            return self._tenants.get(tenant_id) if tenant_id is not None else None

    async def get_project_by_id(self, tenant_id: int, project_id: int) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
        if project is None or project.tenant_id != tenant_id:
            return None
        return project

    async def get_project_by_slug(self, tenant_id: int, slug: str) -> Optional[Project]:
        with self._lock:
            for project in self._projects.values():
                if project.tenant_id == tenant_id and project.slug == slug:
                    return project
        return None

    async def get_prompt_by_id(self, tenant_id: int, project_id: int, prompt_id: int) -> Optional[Prompt]:
        with self._lock:
            prompt = self._prompts.get(prompt_id)
        if prompt is None or prompt.tenant_id != tenant_id or prompt.project_id != project_id:
            return None
        return prompt

    async def get_prompt_by_slug(self, tenant_id: int, project_id: int, slug: str) -> Optional[Prompt]:
        with self._lock:
            for prompt in self._prompts.values():
                if (
                    prompt.tenant_id == tenant_id
                    and prompt.project_id == project_id
                    and prompt.slug == slug
                ):
                    return prompt
        return None

    async def get_router(self, tenant_id: int, project_id: int, prompt_id: int) -> Optional[PromptRouter]:
        with self._lock:
            return self._routers.get((tenant_id, project_id, prompt_id))

    async def get_version(
        self, tenant_id: int, project_id: int, prompt_id: int, version: int
    ) -> Optional[PromptVersion]:
        with self._lock:
            return self._versions.get((tenant_id, project_id, prompt_id, version))


class InMemoryExecutionLogRepository(ExecutionLogRepository):
    """In-memory execution log rows and trace summaries."""

    def __init__(self):
        self._logs: Dict[int, ExecutionLog] = {}
        self._traces: Dict[Tuple[int, int, str], TraceSummary] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    async def insert(self, log: ExecutionLog) -> ExecutionLog:
        with self._lock:
            stored = replace(log, id=next(self._ids))
            self._logs[stored.id] = stored
            return replace(stored)

    async def set_log_path(self, log_id: int, log_path: str) -> None:
        with self._lock:
            self._require(log_id).log_path = log_path

    async def set_usage(self, log_id: int, provider: str, model: str, usage: Dict[str, Any]) -> None:
        with self._lock:
            log = self._require(log_id)
            log.provider = provider
            log.model = model
            log.usage = dict(usage)

    async def get(self, tenant_id: int, project_id: int, log_id: int) -> Optional[ExecutionLog]:
        with self._lock:
            log = self._logs.get(log_id)
            if log is None or log.tenant_id != tenant_id or log.project_id != project_id:
                return None
            return replace(log)

    async def list_by_trace(self, tenant_id: int, project_id: int, trace_id: str) -> List[ExecutionLog]:
        with self._lock:
            return [
                replace(log)
                for log in self._logs.values()
                if log.tenant_id == tenant_id
                and log.project_id == project_id
                and log.trace_id == trace_id
            ]

    async def upsert_trace(self, summary: TraceSummary) -> None:
        with self._lock:
            self._traces[(summary.tenant_id, summary.project_id, summary.trace_id)] = replace(summary)

    async def get_trace(self, tenant_id: int, project_id: int, trace_id: str) -> Optional[TraceSummary]:
        with self._lock:
            summary = self._traces.get((tenant_id, project_id, trace_id))
            return replace(summary) if summary else None

    def all_logs(self) -> List[ExecutionLog]:
        """Snapshot of every stored row (for inspection)."""
        with self._lock:
            return [replace(log) for log in self._logs.values()]

    def _require(self, log_id: int) -> ExecutionLog:
        log = self._logs.get(log_id)
        if log is None:
            raise KeyError(f"Execution log {log_id} not found")
        return log


class InMemoryVariableSearchRepository(VariableSearchRepository):
    """In-memory variable search index (case-insensitive word matching)."""

    def __init__(self):
        self._records: List[VariableSearchRecord] = []
        self._lock = Lock()

    async def insert_batch(self, records: List[VariableSearchRecord]) -> None:
        if not records:
            return
        with self._lock:
            self._records.extend(records)

    async def unique_variable_paths(self, tenant_id: int, project_id: int) -> List[str]:
        with self._lock:
            return sorted({
                record.variable_path
                for record in self._records
                if record.tenant_id == tenant_id and record.project_id == project_id
            })

    async def find_log_ids(
        self,
        tenant_id: int,
        project_id: int,
        variable_path: str,
        value: Optional[str] = None,
    ) -> List[int]:
        words = value.lower().split() if value else []
        with self._lock:
            matches = {
                record.log_id
                for record in self._records
                if record.tenant_id == tenant_id
                and record.project_id == project_id
                and record.variable_path == variable_path
                and all(word in record.variable_value.lower() for word in words)
            }
        return sorted(matches, reverse=True)

    async def delete_by_log_id(self, tenant_id: int, log_id: int) -> None:
        with self._lock:
            self._records = [
                record for record in self._records
                if not (record.tenant_id == tenant_id and record.log_id == log_id)
            ]

    def all_records(self) -> List[VariableSearchRecord]:
        """Snapshot of every indexed record (for inspection)."""
        with self._lock:
            return list(self._records)
