"""
Bookshelf API — Shared Pydantic Schemas
========================================

What:  Envelopes and parameter models shared by every resource.
Why:   Every list endpoint paginates the same way and every error has the
       same shape, so clients write one parser for each.

Pagination envelope:
    {
        "data": [ ... ],
        "pagination": {"page": 2, "limit": 20, "total": 57,
                       "total_pages": 3, "has_next": true, "has_prev": true}
    }

Error envelope:
    {"error": "not_found", "message": "...", "details": {...}, "request_id": "..."}
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginationParams(BaseModel):
    """
    Validated page/limit pair.

    Built by the `get_pagination` dependency from query parameters; range
    violations become 400 responses before any handler code runs.
    """
    page: int = Field(default=1, ge=1, description="1-based page number")
    limit: int = Field(default=20, ge=1, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PaginationMeta(BaseModel):
    """Where the current page sits in the full result set."""
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Page size used for this response")
    total: int = Field(description="Total number of items matching the filters")
    total_pages: int = Field(description="Number of pages; 0 when there are no items")
    has_next: bool = Field(description="Whether a later page exists")
    has_prev: bool = Field(description="Whether an earlier page exists")


class Page(BaseModel, Generic[T]):
    """Paginated list envelope: `{data, pagination}`."""
    data: List[T] = Field(description="Items on this page")
    pagination: PaginationMeta


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
