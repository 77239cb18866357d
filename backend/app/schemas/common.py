"""Error response body shared by the exception handlers."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    field: str | None = Field(None, description="Field that caused the error")
    message: str


class ErrorResponse(BaseModel):
    """Body returned for domain errors (missing entity, duplicate, upstream failure).

    Attributes:
        error: Error code, e.g. ``NotFound`` or ``UpstreamError``
        message: Human-readable error message
        details: Per-field details, when there are any
        path: Request path that caused the error
    """

    error: str
    message: str
    details: list[ErrorDetail] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    path: str | None = None
