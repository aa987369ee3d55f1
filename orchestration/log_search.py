"""
Log Search

Finds execution logs of a project by the variables they were run with.

DESIGN RULES:
- Tenant-scoped: the project is resolved for the calling tenant first
- Operators: "contains" (value required) and "notEmpty" (path present)
- A malformed filter is the caller's error (400), never an empty result
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from orchestration.errors import InvalidStateError, NotFoundError
from orchestration.resolver import EntityRef, EntityResolver
from storage.models import Project
from storage.repository import VariableSearchRepository

logger = logging.getLogger(__name__)

CONTAINS = "contains"
NOT_EMPTY = "notEmpty"
OPERATORS = (CONTAINS, NOT_EMPTY)


@dataclass(frozen=True)
class VariableFilter:
    path: str
    operator: str = CONTAINS
    value: Optional[str] = None

    @classmethod
    def parse(cls, path: Optional[str], operator: Optional[str], value: Optional[str]) -> "VariableFilter":
        """
        Raises:
            InvalidStateError: for a missing path, an unknown operator, or
                "contains" without a value
        """
        path = (path or "").strip()
        operator = operator or CONTAINS
        value = (value or "").strip()

        if not path:
            raise InvalidStateError("Invalid filter: variablePath is required")
        if operator not in OPERATORS:
            raise InvalidStateError(
                f"Invalid filter: unknown variableOperator '{operator}' (expected: {', '.join(OPERATORS)})"
            )
        if operator == CONTAINS and not value:
            raise InvalidStateError("Invalid filter: variableValue is required for 'contains'")

        return cls(path=path, operator=operator, value=value if operator == CONTAINS else None)


class LogSearch:
    """Variable search over the logs of one project."""

    def __init__(self, resolver: EntityResolver, search_repository: VariableSearchRepository):
        self._resolver = resolver
        self._search_repository = search_repository

    async def find_log_ids(self, tenant_id: int, project_ref: EntityRef, variable_filter: VariableFilter) -> List[int]:
        project = await self._project(tenant_id, project_ref)
        log_ids = await self._search_repository.find_log_ids(
            tenant_id, project.id, variable_filter.path, variable_filter.value
        )
        logger.debug(
            f"[LOG_SEARCH] {variable_filter.operator} on {variable_filter.path} "
            f"in project {project.id}: {len(log_ids)} log(s)"
        )
        return log_ids

    async def variable_paths(self, tenant_id: int, project_ref: EntityRef) -> List[str]:
        project = await self._project(tenant_id, project_ref)
        return await self._search_repository.unique_variable_paths(tenant_id, project.id)

    async def _project(self, tenant_id: int, project_ref: EntityRef) -> Project:
        project = await self._resolver.resolve_project(tenant_id, project_ref)
        if project is None:
            raise NotFoundError("Project not found")
        return project
