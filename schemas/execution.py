from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.prompt_body import Message, ResponseFormat


class ExecutionRequest(BaseModel):
    """
    Normalized request handed to a provider.

    Built fresh for every call and never persisted directly; the
    provider logs the exact outbound payload it derives from it.
    """
    model: str
    messages: List[Message]
    variables: Optional[Dict[str, Any]] = None
    response_format: Optional[ResponseFormat] = None
    provider_settings: Dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque settings validated by the target provider only",
    )
    proxy: Optional[str] = None

    # Identity hints used for provider-side caching
    project_id: Optional[int] = None
    prompt_slug: Optional[str] = None
    prompt_version: Optional[int] = None


class TokenUsage(BaseModel):
    """Token counts; providers may attach extra counters."""
    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ExecutionResult(BaseModel):
    """Normalized provider response."""
    content: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    duration_ms: int = Field(..., ge=0, description="Wall-clock time of the provider call")
