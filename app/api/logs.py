"""
Log Search API Routes

Thin delegation layer to LogSearch.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_log_search, get_tenant_id
from orchestration.log_search import LogSearch, VariableFilter
from orchestration.resolver import EntityRef
from schemas.response import ErrorResponse, LogSearchResponse, VariablePathsResponse


router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.get(
    "/projects/{project_slug_or_id}/logs/search",
    response_model=LogSearchResponse,
    responses=ERROR_RESPONSES,
)
async def search_logs(
    project_slug_or_id: str,
    variable_path: Optional[str] = Query(default=None, alias="variablePath"),
    variable_operator: Optional[str] = Query(default=None, alias="variableOperator"),
    variable_value: Optional[str] = Query(default=None, alias="variableValue"),
    tenant_id: int = Depends(get_tenant_id),
    log_search: LogSearch = Depends(get_log_search),
) -> LogSearchResponse:
    """Execution logs whose variables match the filter."""
    variable_filter = VariableFilter.parse(variable_path, variable_operator, variable_value)
    log_ids = await log_search.find_log_ids(tenant_id, EntityRef.parse(project_slug_or_id), variable_filter)
    return LogSearchResponse(log_ids=log_ids)


@router.get(
    "/projects/{project_slug_or_id}/logs/variables",
    response_model=VariablePathsResponse,
    responses=ERROR_RESPONSES,
)
async def list_variable_paths(
    project_slug_or_id: str,
    tenant_id: int = Depends(get_tenant_id),
    log_search: LogSearch = Depends(get_log_search),
) -> VariablePathsResponse:
    paths = await log_search.variable_paths(tenant_id, EntityRef.parse(project_slug_or_id))
    return VariablePathsResponse(paths=paths)
