"""
Execute API Routes

Thin delegation layer to the prompt executor.
Contains NO business logic: identifiers are classified and handed over.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Header

from app.dependencies import get_prompt_executor, get_provider_service, get_tenant_id
from llm.service import ProviderService
from orchestration.executor import PromptExecutor
from orchestration.resolver import EntityRef
from schemas.request import ExecutePromptRequest
from schemas.response import ErrorResponse, ExecutePromptResponse, ProviderInfo, WhoAmIResponse


router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/projects/{project_slug_or_id}/prompts/{prompt_slug_or_id}/execute",
    response_model=ExecutePromptResponse,
    responses=ERROR_RESPONSES,
)
async def execute_prompt(
    project_slug_or_id: str,
    prompt_slug_or_id: str,
    request: Optional[ExecutePromptRequest] = Body(default=None),
    traceparent: Optional[str] = Header(default=None),
    tenant_id: int = Depends(get_tenant_id),
    executor: PromptExecutor = Depends(get_prompt_executor),
) -> ExecutePromptResponse:
    """
    Execute the active version of a prompt.

    Path parameters are numeric ids or slugs. An optional W3C
    traceparent header correlates the execution log with a caller trace.
    """
    return await executor.execute(
        tenant_id=tenant_id,
        project_ref=EntityRef.parse(project_slug_or_id),
        prompt_ref=EntityRef.parse(prompt_slug_or_id),
        variables=request.variables if request is not None else None,
        traceparent_header=traceparent,
    )


@router.get("/whoami", response_model=WhoAmIResponse, responses={401: {"model": ErrorResponse}})
async def whoami(tenant_id: int = Depends(get_tenant_id)) -> WhoAmIResponse:
    """API key check."""
    return WhoAmIResponse()


@router.get("/providers", response_model=List[ProviderInfo], responses={401: {"model": ErrorResponse}})
async def list_providers(
    tenant_id: int = Depends(get_tenant_id),
    provider_service: ProviderService = Depends(get_provider_service),
) -> List[ProviderInfo]:
    return provider_service.get_providers()
