"""Shared pydantic building blocks: camelCase wire models and the response envelope."""
from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """snake_case attributes, camelCase JSON keys; accepts either on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationOut(CamelModel):
    total: int
    page: int
    limit: int
    pages: int


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
    pagination: PaginationOut | None = None


def paginate(total: int, page: int, limit: int) -> PaginationOut:
    pages = -(-total // limit) if limit else 0
    return PaginationOut(total=total, page=page, limit=limit, pages=pages)
