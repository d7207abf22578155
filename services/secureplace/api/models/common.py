"""Common Pydantic models used across the API."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class SecurePlaceModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class TimestampMixin(SecurePlaceModel):
    """Mixin for models with timestamps."""

    created_at: datetime
    updated_at: datetime


class PaginationParams(SecurePlaceModel):
    """Pagination parameters for list endpoints."""

    cursor: str | None = Field(default=None, description="Cursor for pagination")
    limit: int = Field(default=50, ge=1, le=100, description="Number of items per page")


T = TypeVar("T")


class CursorPage(SecurePlaceModel, Generic[T]):
    """Cursor-based pagination response."""

    items: list[T]
    next_cursor: str | None = Field(
        default=None, description="Cursor for next page, null if no more pages"
    )
    has_more: bool = Field(description="Whether there are more items")


class ErrorDetail(SecurePlaceModel):
    """Body of a failed workflow response."""

    message: str
    stage: str | None = None
