"""
Shared list schemas
"""
import math
from typing import Generic, List, TypeVar
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")
    has_next: bool = Field(alias="hasNext")
    has_previous: bool = Field(alias="hasPrevious")

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "PaginationMeta":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


class Paginated(BaseModel, Generic[T]):
    data: List[T]
    meta: PaginationMeta


class BulkIds(BaseModel):
    ids: List[int]


class BulkResult(BaseModel):
    success_count: int
    failed_ids: List[int] = []
    message: str
