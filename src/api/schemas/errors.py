"""Error response schemas.

Every failure that reaches a caller is rendered as an ErrorEnvelope.
``stack`` and ``details`` are only ever populated outside production;
the model is dumped with ``exclude_none`` so absent fields are omitted
instead of being sent as null.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorEnvelope(BaseModel):
    """Normalized error body returned for every unhandled failure."""

    error: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Cliente no encontrado", "internal server error"],
    )

    code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["NOT_FOUND", "INTERNAL_ERROR"],
    )

    stack: str | None = Field(
        default=None,
        description="Formatted traceback (development only)",
    )

    details: dict[str, Any] | None = Field(
        default=None,
        description="Request context and extra error data (development only)",
        examples=[{"url": "http://localhost:3001/clientes/42", "method": "GET"}],
    )


class RateLimitRejection(BaseModel):
    """Body of a 429 response emitted by the rate limiter."""

    code: int = Field(default=429, description="HTTP status code")
    error: str = Field(..., description="Status reason phrase")
    message: str = Field(..., description="Localized explanation")
    retry_after: int = Field(
        ...,
        ge=0,
        serialization_alias="retryAfter",
        description="Seconds until the current window resets",
    )
