"""Service-level endpoints: liveness directory and dependency health.

``/`` never touches a dependency and answers as long as the process is
up. ``/health`` probes the database on every call and reports 503 when the
probe fails, without exposing the underlying error to the caller.
"""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from functools import partial
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from loguru import logger

from src.api.schemas.health import CheckStatus, HealthSnapshot, ServiceDirectory
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings
from src.infrastructure.database.session import check_database_connection

type HealthProbe = Callable[[], Awaitable[tuple[bool, str | None]]]

PROCESS_STARTED_AT = time.monotonic()
DATABASE_FAILURE_MESSAGE = "Database connection failed"

router = APIRouter(tags=["service"])


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings


def get_health_probe(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthProbe:
    """Database liveness probe bounded by the configured timeout."""
    return partial(
        check_database_connection, settings.health_config.probe_timeout_seconds
    )


def get_uptime_seconds() -> float:
    """Seconds elapsed since this module was imported."""
    return round(time.monotonic() - PROCESS_STARTED_AT, 3)


class HealthAggregator:
    """Combine dependency probes into a single health snapshot.

    Args:
        settings: Application settings (environment and version are reported).
        database_probe: Async callable returning ``(healthy, error_message)``.
    """

    def __init__(self, settings: Settings, database_probe: HealthProbe) -> None:
        self.settings = settings
        self.database_probe = database_probe

    async def _check_database(self) -> CheckStatus:
        try:
            healthy, error_message = await self.database_probe()
        except Exception as exc:  # noqa: BLE001
            healthy, error_message = False, f"{type(exc).__name__}: {exc}"

        if healthy:
            return "ok"
        logger.error("Database health check failed: {}", error_message)
        return "error"

    async def snapshot(self) -> HealthSnapshot:
        """Probe every dependency and build a fresh snapshot."""
        database_status = await self._check_database()
        degraded = database_status != "ok"
        return HealthSnapshot(
            status="degraded" if degraded else "ok",
            timestamp=datetime.now(UTC),
            uptime=get_uptime_seconds(),
            environment=self.settings.environment,
            version=self.settings.app_version,
            checks={"api": "ok", "database": database_status},
            error=DATABASE_FAILURE_MESSAGE if degraded else None,
        )


@router.get("/", response_model=ServiceDirectory)
async def root(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ServiceDirectory:
    """Static service identity and the directory of mounted routes.

    Returns:
        ServiceDirectory: Name, version, environment and route prefixes.
    """
    endpoints = {"health": "/health"}
    for prefix in getattr(request.app.state, "domain_prefixes", ()):
        endpoints[prefix.lstrip("/")] = prefix

    return ServiceDirectory(
        message=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        timestamp=datetime.now(UTC),
        endpoints=endpoints,
    )


@router.get(
    "/health",
    response_model=HealthSnapshot,
    responses={503: {"model": HealthSnapshot, "description": "Dependency down"}},
)
async def health(
    settings: Annotated[Settings, Depends(get_app_settings)],
    probe: Annotated[HealthProbe, Depends(get_health_probe)],
) -> ORJSONResponse:
    """Health check endpoint for monitoring and container orchestration.

    Used by:
    - Docker health checks
    - Load balancers and uptime monitors

    Returns:
        ORJSONResponse: 200 with ``status: ok``, or 503 with ``status: degraded``.
    """
    snapshot = await HealthAggregator(settings, probe).snapshot()
    status_code = 200 if snapshot.status == "ok" else 503
    return ORJSONResponse(status_code=status_code, content=snapshot)
