from typing import Any

from pydantic import BaseModel, Field


class CompletionRequest(BaseModel):
    # Message and option validation is left to the gateway so errors carry its codes
    messages: list[Any] = Field(default_factory=list)
    options: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    detail: str
    code: str
