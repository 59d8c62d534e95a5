# src/skillboard/schemas/pagination.py

"""Pagination schemas and sort options for list endpoints."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class LeagueSortField(str, Enum):
    """Sortable league columns."""

    ID = "id"
    NAME = "name"
    START_AT = "start_at"
    CREATED_AT = "created_at"


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response wrapper.

    For ranked lists, ``skip`` never changes the rank numbers of ``items``:
    the rank is the position in the whole list, not in the page.
    """

    items: list[T]
    total: int = Field(..., description="Total records matching filters")
    skip: int = Field(..., description="Records skipped")
    limit: int = Field(..., description="Max records returned")
    has_more: bool = Field(..., description="More records exist beyond this page")

    @classmethod
    def from_slice(
        cls, everything: list, skip: int, limit: int
    ) -> "PaginatedResponse":
        page = everything[skip : skip + limit]
        return cls(
            items=page,
            total=len(everything),
            skip=skip,
            limit=limit,
            has_more=(skip + len(page)) < len(everything),
        )
