"""Fixtures for API unit tests."""

from collections.abc import Callable
from types import SimpleNamespace

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.requests import Request
from starlette.responses import Response

from src.core.config import Settings

type RequestFactory = Callable[..., Request]


@pytest.fixture
def make_request() -> RequestFactory:
    """Build real Starlette requests from a minimal ASGI scope.

    Returns:
        RequestFactory: ``make_request(method, path, headers=..., settings=...)``.
    """

    def factory(
        method: str = "GET",
        path: str = "/clientes",
        *,
        headers: dict[str, str] | None = None,
        settings: Settings | None = None,
        client: tuple[str, int] | None = ("203.0.113.7", 51000),
    ) -> Request:
        app = SimpleNamespace(state=SimpleNamespace(settings=settings))
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "scheme": "http",
            "query_string": b"",
            "server": ("testserver", 80),
            "client": client,
            "headers": [
                (name.lower().encode(), value.encode())
                for name, value in (headers or {}).items()
            ],
            "app": app,
        }
        return Request(scope)

    return factory


@pytest.fixture
def handler_response() -> Response:
    """Response returned by the downstream handler."""
    return Response(content=b'{"ok":true}', media_type="application/json")


@pytest.fixture
def call_next(mocker: MockerFixture, handler_response: Response) -> MockType:
    """Downstream handler returning ``handler_response``."""
    return mocker.AsyncMock(return_value=handler_response)


@pytest.fixture
def mock_app(mocker: MockerFixture) -> MockType:
    """ASGI app placeholder wrapped by the middleware under test."""
    return mocker.AsyncMock()
