from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ExecutePromptRequest(BaseModel):
    """
    API request model for the execute-prompt endpoint.

    This is the external contract: clients send this.
    """
    variables: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Variables to substitute in the prompt template (key-value pairs)",
    )
