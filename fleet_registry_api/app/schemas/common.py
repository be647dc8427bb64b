"""Schemas shared by every entity type."""

from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PageResponse(BaseModel, Generic[T]):
    """One page of results plus the total matching the filters."""

    data: List[T]
    page: int
    limit: int
    total: int
    total_pages: int


class MessageResponse(BaseModel):
    message: str
