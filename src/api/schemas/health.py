"""Health and liveness response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CheckStatus = Literal["ok", "error", "unknown"]


class HealthSnapshot(BaseModel):
    """Aggregate dependency health, computed fresh for every call."""

    status: Literal["ok", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(..., description="When the snapshot was taken")
    uptime: float = Field(..., ge=0, description="Process uptime in seconds")
    environment: str = Field(..., description="Deployment environment")
    version: str = Field(..., description="Service version")
    checks: dict[str, CheckStatus] = Field(
        ...,
        description="Status per dependency",
        examples=[{"api": "ok", "database": "ok"}],
    )
    error: str | None = Field(
        default=None,
        description="Generic failure summary when degraded",
    )


class ServiceDirectory(BaseModel):
    """Static identity returned by the liveness endpoint."""

    message: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    status: Literal["running"] = Field(default="running")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(..., description="Server time")
    endpoints: dict[str, str] = Field(
        ...,
        description="Mounted route prefixes by name",
        examples=[{"health": "/health", "clientes": "/clientes"}],
    )
