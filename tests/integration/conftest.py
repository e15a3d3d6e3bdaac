"""Shared fixtures for integration tests.

The application is exercised in-process through httpx's ASGI transport;
the database probe is replaced so no server is needed.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import pytest
from fastapi import APIRouter, FastAPI
from httpx import ASGITransport, AsyncClient

from src.api.main import create_app
from src.api.routes.service import HealthProbe, get_health_probe
from src.core.config import Settings
from src.core.exceptions import NotFoundError

type ClientFactory = Callable[..., AbstractAsyncContextManager[AsyncClient]]


async def healthy_probe() -> tuple[bool, str | None]:
    """Database probe that always succeeds."""
    return True, None


def build_clientes_router() -> APIRouter:
    """Minimal domain router exercising the error paths."""
    router = APIRouter()

    @router.get("/")
    async def list_clientes(limit: int = 10) -> dict[str, object]:
        return {"items": [], "limit": limit}

    @router.get("/missing")
    async def missing_cliente() -> None:
        raise NotFoundError("Cliente no encontrado")

    @router.get("/crash")
    async def crash() -> None:
        msg = "could not connect to postgres://optica:s3cret@db"
        raise ValueError(msg)

    return router


def build_app(settings: Settings, probe: HealthProbe = healthy_probe) -> FastAPI:
    """Create the application with a test domain router and probe."""
    app = create_app(settings, domain_routers={"/clientes": build_clientes_router()})
    app.dependency_overrides[get_health_probe] = lambda: probe
    return app


@pytest.fixture
def app_client() -> ClientFactory:
    """Factory of HTTP clients bound to a freshly created application.

    Returns:
        ClientFactory: ``app_client(settings, probe=...)``.
    """

    @asynccontextmanager
    async def factory(
        settings: Settings,
        *,
        probe: HealthProbe = healthy_probe,
    ) -> AsyncGenerator[AsyncClient]:
        transport = ASGITransport(app=build_app(settings, probe))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    return factory


@pytest.fixture
async def client(development_settings: Settings) -> AsyncGenerator[AsyncClient]:
    """HTTP client for a development application."""
    transport = ASGITransport(app=build_app(development_settings))
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
