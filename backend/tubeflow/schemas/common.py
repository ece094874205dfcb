"""Response envelopes shared by every endpoint.

Success: {"success": true, "data": ..., "message": str | null}
Paginated lists add "pagination": {total, page, limit, pages}.
Failures are rendered by the exception handlers in tubeflow.main.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class Envelope(BaseModel, Generic[T]):
    """Standard success envelope."""

    success: bool = True
    data: T
    message: str | None = None


class PaginatedEnvelope(Envelope[T], Generic[T]):
    pagination: Pagination


class ErrorEnvelope(BaseModel):
    """Failure body; documented for OpenAPI only."""

    success: bool = False
    message: str
    error: str = Field(..., description="Stable error code, e.g. NOT_FOUND")
    request_id: str


def ok(data: Any, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def paginated(data: Any, pagination: dict[str, int], message: str | None = None) -> dict[str, Any]:
    return {**ok(data, message), "pagination": pagination}
