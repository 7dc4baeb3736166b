"""Shared schema base and the success/error response envelopes."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Schema base: snake_case in Python, camelCase on the wire (both accepted on input)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope wrapping every response payload."""

    status_code: int = Field(..., description="HTTP status code of the response")
    data: T | None = Field(default=None, description="Response payload")
    message: str = Field(default="Success", description="Human readable summary")
    success: bool = Field(default=True, description="Always true for successful responses")


class ErrorResponse(CamelModel):
    """Error envelope; documents the shape rendered by the exception handlers."""

    status_code: int
    data: None = None
    message: str
    success: bool = False
    errors: list[Any] = Field(default_factory=list)
