"""Common schemas used across the application."""

from datetime import datetime, timezone
from decimal import Decimal
from math import ceil
from typing import Annotated, Any, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

T = TypeVar("T")


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes from clients as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Rupee amounts at the API edge; converted to paise before reaching services
Rupees = Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]
RupeesOrZero = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Error code (e.g., INSUFFICIENT_BALANCE)")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error details")
    trace_id: str | None = Field(None, alias="traceId", description="Request trace ID")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorDetail


class PaginationMeta(BaseModel):
    """Pagination metadata in response."""

    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, total_pages=ceil(total / limit) if limit else 0)


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    pagination: PaginationMeta


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str = "Operation completed successfully"
