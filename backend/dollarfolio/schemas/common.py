"""Common response schemas used across the API."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response wrapper.

    Attributes:
        items: List of items for the current page
        total: Total number of items across all pages
        skip: Number of items skipped (offset)
        limit: Maximum items per page
        has_more: Whether more items exist beyond the current page
    """

    items: list[T]
    total: int = Field(..., description="Total number of items")
    skip: int = Field(..., description="Number of items skipped")
    limit: int = Field(..., description="Maximum items per page")
    has_more: bool = Field(..., description="Whether more items exist")


class MessageResponse(BaseModel):
    """Simple message response for operations that return only a message."""

    message: str
