"""
Prompt Body Schemas

Shape of the JSON body stored on every published prompt version.
Unknown keys are kept so that older or newer bodies still load.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """One chat message of a prompt template."""
    role: Literal["system", "user", "assistant"]
    content: str


class JsonSchemaFormat(BaseModel):
    """json_schema payload of a structured response format."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = None
    strict: Optional[bool] = None
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")


class ResponseFormat(BaseModel):
    """
    Tagged response format.

    - {"type": "text"}
    - {"type": "json"}
    - {"type": "json_schema", "json_schema": {"name": ..., "schema": {...}}}
    - {"type": "json_schema", "schema": {...}}
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Literal["text", "json", "json_schema"] = "text"
    json_schema: Optional[JsonSchemaFormat] = None
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")

    @property
    def is_structured(self) -> bool:
        """Whether the provider must be asked for JSON output."""
        return self.type in ("json", "json_schema")

    def resolved_schema(self) -> Optional[Dict[str, Any]]:
        """
        The JSON schema to send to the provider, if any.

        Falls back to the whole json_schema object when it carries no
        explicit "schema" key.
        """
        if self.json_schema is not None:
            if self.json_schema.schema_ is not None:
                return self.json_schema.schema_
            return self.json_schema.model_dump(exclude_none=True, by_alias=True)
        return self.schema_


class OpenAISettings(BaseModel):
    """Settings understood by the OpenAI provider (reasoning models)."""
    model_config = ConfigDict(extra="allow")

    reasoning_effort: Optional[Literal["minimal", "low", "medium", "high"]] = None
    reasoning_summary: Optional[Literal["auto", "concise", "detailed"]] = None
    store: Optional[bool] = None
    include_encrypted_reasoning: Optional[bool] = None


class GoogleSettings(BaseModel):
    """Settings understood by the Google provider (thinking models)."""
    model_config = ConfigDict(extra="allow")

    include_thoughts: Optional[bool] = None
    thinking_budget: Optional[int] = None
    thinking_level: Optional[
        Literal["THINKING_LEVEL_UNSPECIFIED", "MINIMAL", "LOW", "MEDIUM", "HIGH"]
    ] = None
    google_search_enabled: bool = False
    cache_system_message: bool = False


class PromptBody(BaseModel):
    """
    Parsed prompt version body.

    Provider settings stay as raw mappings here; each provider
    validates only its own settings when it is dispatched to.
    """
    model_config = ConfigDict(extra="allow")

    messages: List[Message] = Field(default_factory=list)
    response_format: Optional[ResponseFormat] = None
    openai_settings: Optional[Dict[str, Any]] = None
    google_settings: Optional[Dict[str, Any]] = None
    proxy: Optional[str] = None

    def settings_for(self, provider_name: str) -> Dict[str, Any]:
        """Settings payload for the named provider (empty if none)."""
        settings = {
            "openai": self.openai_settings,
            "google": self.google_settings,
        }.get(provider_name.lower())
        return dict(settings or {})
