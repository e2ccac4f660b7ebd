# itasks/core/pagination.py
"""
Pagination shared by the list endpoints
"""
from math import ceil
from typing import TypeVar, Generic, List, Optional

from fastapi import Query as QueryParam
from pydantic import BaseModel, ConfigDict, Field, computed_field
from sqlalchemy import select, func, Select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar('T')


class PaginationParams(BaseModel):
    """Base pagination parameters used across all endpoints"""
    page: int = Field(1, ge=1, description="Page number (1-indexed)")
    size: int = Field(20, ge=1, le=100, description="Items per page")
    sort_order: str = Field("desc", pattern="^(asc|desc)$", description="Sort order")
    search: Optional[str] = Field(None, description="Search term")

    @computed_field
    @property
    def offset(self) -> int:
        """Calculate offset for database query"""
        return (self.page - 1) * self.size


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic paginated response that all list endpoints use
    """
    model_config = ConfigDict(from_attributes=True)

    items: List[T]
    total: int
    page: int
    size: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, items: List[T], total: int, params: PaginationParams) -> "PaginatedResponse[T]":
        pages = ceil(total / params.size) if total > 0 else 0
        return cls(
            items=items,
            total=total,
            page=params.page,
            size=params.size,
            pages=pages,
            has_next=params.page < pages,
            has_prev=params.page > 1,
        )


async def paginate_query(db: AsyncSession, query: Select, params: PaginationParams):
    """Run a select with count + offset/limit; returns (rows, total)"""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = await db.scalar(count_query) or 0

    result = await db.execute(query.offset(params.offset).limit(params.size))
    return list(result.scalars().unique().all()), total


# FastAPI dependency for pagination
def get_pagination(
        page: int = QueryParam(1, ge=1, description="Page number"),
        size: int = QueryParam(20, ge=1, le=100, description="Items per page"),
        sort_order: str = QueryParam("desc", pattern="^(asc|desc)$", description="Sort order"),
        search: Optional[str] = QueryParam(None, description="Search term")
) -> PaginationParams:
    """Dependency to extract pagination parameters"""
    return PaginationParams(
        page=page,
        size=size,
        sort_order=sort_order,
        search=search
    )
