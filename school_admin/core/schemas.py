"""Shared response envelopes and the camelCase base model used by every resource."""

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataResponse(CamelModel, Generic[T]):
    success: bool = True
    data: T


class PaginatedResponse(CamelModel, Generic[T]):
    """List envelope: count is the total match count, data is the current page."""

    success: bool = True
    count: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    current_page: int = Field(..., ge=1)
    data: List[T]


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    errors: Optional[List[str]] = None


def column_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members -> their stored string values, for assigning validated input onto ORM rows."""
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}
