"""
Repository Interfaces

Storage-agnostic contracts for the relational data the execution
pipeline reads and writes. Implementations can be in-memory, SQL, etc.

DESIGN RULES:
- Every catalog lookup is tenant-scoped
- A record belonging to another tenant is reported as missing
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

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


class CatalogRepository(ABC):
    """
    Read access to tenants, projects, prompts and published versions.

    Implementations:
    - InMemoryCatalog (default, seeded from YAML)
    """

    @abstractmethod
    async def get_tenant_by_api_key(self, api_key: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    async def get_project_by_id(self, tenant_id: int, project_id: int) -> Optional[Project]:
        pass

    @abstractmethod
    async def get_project_by_slug(self, tenant_id: int, slug: str) -> Optional[Project]:
        pass

    @abstractmethod
    async def get_prompt_by_id(self, tenant_id: int, project_id: int, prompt_id: int) -> Optional[Prompt]:
        pass

    @abstractmethod
    async def get_prompt_by_slug(self, tenant_id: int, project_id: int, slug: str) -> Optional[Prompt]:
        pass

    @abstractmethod
    async def get_router(self, tenant_id: int, project_id: int, prompt_id: int) -> Optional[PromptRouter]:
        pass

    @abstractmethod
    async def get_version(
        self, tenant_id: int, project_id: int, prompt_id: int, version: int
    ) -> Optional[PromptVersion]:
        pass


class ExecutionLogRepository(ABC):
    """
    Persistence for execution log rows and trace summaries.

    Implementations:
    - InMemoryExecutionLogRepository
    """

    @abstractmethod
    async def insert(self, log: ExecutionLog) -> ExecutionLog:
        """Insert a log row and return it with its assigned id."""
        pass

    @abstractmethod
    async def set_log_path(self, log_id: int, log_path: str) -> None:
        pass

    @abstractmethod
    async def set_usage(self, log_id: int, provider: str, model: str, usage: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def get(self, tenant_id: int, project_id: int, log_id: int) -> Optional[ExecutionLog]:
        pass

    @abstractmethod
    async def list_by_trace(self, tenant_id: int, project_id: int, trace_id: str) -> List[ExecutionLog]:
        pass

    @abstractmethod
    async def upsert_trace(self, summary: TraceSummary) -> None:
        pass

    @abstractmethod
    async def get_trace(self, tenant_id: int, project_id: int, trace_id: str) -> Optional[TraceSummary]:
        pass


class VariableSearchRepository(ABC):
    """
    Search index over the flattened variables of execution logs.

    Implementations:
    - InMemoryVariableSearchRepository
    """

    @abstractmethod
    async def insert_batch(self, records: List[VariableSearchRecord]) -> None:
        pass

    @abstractmethod
    async def unique_variable_paths(self, tenant_id: int, project_id: int) -> List[str]:
        """Distinct indexed paths of a project, sorted."""
        pass

    @abstractmethod
    async def find_log_ids(
        self,
        tenant_id: int,
        project_id: int,
        variable_path: str,
        value: Optional[str] = None,
    ) -> List[int]:
        """
        Log ids (newest first) having variable_path indexed.

        With a value, only logs whose text at that path contains every
        word of it (case-insensitive).
        """
        pass

    @abstractmethod
    async def delete_by_log_id(self, tenant_id: int, log_id: int) -> None:
        pass
