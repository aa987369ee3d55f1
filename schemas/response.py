from typing import Any, List
from pydantic import BaseModel, Field


class ExecutePromptResponse(BaseModel):
    """
    API response model for the execute-prompt endpoint.

    `response` is a JSON value when structured output was requested
    and the provider returned valid JSON, otherwise the raw text.
    """
    response: Any = Field(..., description="Model output (text or parsed JSON)")


class ErrorResponse(BaseModel):
    """Error payload returned for every non-2xx response."""
    error: str = Field(..., description="Human-readable error message")


class WhoAmIResponse(BaseModel):
    ok: bool = True


class ModelInfo(BaseModel):
    id: str
    name: str


class ProviderInfo(BaseModel):
    """Provider metadata for clients choosing a provider/model."""
    id: str = Field(..., description="Provider identifier used in prompts")
    name: str
    description: str
    models: List[ModelInfo] = Field(default_factory=list)


class LogSearchResponse(BaseModel):
    log_ids: List[int] = Field(default_factory=list, description="Matching execution log ids, newest first")


class VariablePathsResponse(BaseModel):
    paths: List[str] = Field(default_factory=list, description="Distinct indexed variable paths")
