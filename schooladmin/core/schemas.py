from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    """Uniform success envelope: {"success": true, "data": ...}."""

    success: bool = True
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Uniform failure envelope: {"success": false, "error": "..."}."""

    success: bool = False
    error: str


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next_page: bool
    has_prev_page: bool
