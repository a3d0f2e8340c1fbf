"""Canonical tool definition model."""

from pydantic import BaseModel, Field
from typing import Any, Dict, List


class ToolDefinition(BaseModel):
    """Function the LLM may ask the caller to run against the booking backend."""
    name: str = Field(..., description="Canonical tool name")
    description: str = Field(..., description="Tool description shown to the model")
    parameters_schema: Dict[str, Any] = Field(..., description="JSON Schema for parameters")

    @property
    def required_parameters(self) -> List[str]:
        return list(self.parameters_schema.get("required", []))
