"""
Common Pydantic schemas used across the Deploy Service.
"""
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from deploy_service.utils.helpers import to_camel

# Generic type for paginated response items
T = TypeVar("T")


class MessageResponse(BaseModel):
    """A standard response for simple messages (e.g., success or error details)."""

    detail: str


class StatusResponse(BaseModel):
    """Response body of the health probes."""

    status: str
    message: str


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic schema for paginated API responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[T]
    total: int = Field(..., description="Total number of items available.")
    page: int = Field(..., description="Current page number.")
    size: int = Field(..., description="Number of items per page.")
    pages: int = Field(..., description="Total number of pages.")
    has_next: bool = Field(..., description="Indicates if there is a next page.")
    has_prev: bool = Field(..., description="Indicates if there is a previous page.")
    next_page: Optional[int] = Field(None, description="The number of the next page.")
    prev_page: Optional[int] = Field(
        None, description="The number of the previous page."
    )
