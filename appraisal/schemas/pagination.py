from typing import Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """Envelope returned when a list endpoint is called with ?include_pagination=true"""
    items: list[T]
    pagination: PaginationMeta


def paginated(items: list[T], *, total: int, limit: int, offset: int, include_pagination: bool):
    """Bare list by default; envelope with metadata when asked for."""
    if not include_pagination:
        return items
    return PaginatedResponse(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + len(items) < total),
        ),
    )
