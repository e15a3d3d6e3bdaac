"""Integration tests for the HTTP gateway."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

import pytest
import pytest_check
from httpx import AsyncClient

from src.api.middleware.security_headers import STATIC_SECURITY_HEADERS
from src.core.config import Settings

type ClientFactory = Callable[..., AbstractAsyncContextManager[AsyncClient]]


async def failing_probe() -> tuple[bool, str | None]:
    """Database probe reporting a driver error."""
    return False, 'password authentication failed for user "optica"'


@pytest.mark.integration
class TestServiceEndpoints:
    """Directory and health endpoints."""

    async def test_root_directory(self, client: AsyncClient) -> None:
        """Test GET / lists the service identity and mounted prefixes."""
        response = await client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Optica API"
        assert body["version"] == "1.0.0"
        assert body["status"] == "running"
        assert body["environment"] == "development"
        assert body["endpoints"] == {"health": "/health", "clientes": "/clientes"}
        assert "timestamp" in body

    async def test_health_ok(self, client: AsyncClient) -> None:
        """Test a healthy database yields 200."""
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["checks"] == {"api": "ok", "database": "ok"}
        assert "error" not in body

    async def test_health_degraded(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test a failing database yields 503 without the driver message."""
        async with app_client(production_settings, probe=failing_probe) as client:
            response = await client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "degraded"
        assert body["checks"]["database"] == "error"
        assert body["error"] == "Database connection failed"
        assert "optica" not in response.text

    async def test_root_survives_database_outage(
        self, app_client: ClientFactory, development_settings: Settings
    ) -> None:
        """Test liveness does not depend on the database."""
        async with app_client(development_settings, probe=failing_probe) as client:
            response = await client.get("/")

        assert response.status_code == 200


@pytest.mark.integration
class TestResponseHeaders:
    """Headers added by the middleware stack."""

    async def test_security_headers(self, client: AsyncClient) -> None:
        """Test every static security header and the CSP are present."""
        response = await client.get("/")

        for name, value in STATIC_SECURITY_HEADERS.items():
            with pytest_check.check:
                assert response.headers[name] == value
        with pytest_check.check:
            assert "default-src 'self'" in response.headers["Content-Security-Policy"]
        with pytest_check.check:
            assert "Strict-Transport-Security" not in response.headers

    async def test_hsts_in_production(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test HSTS is only sent in production."""
        async with app_client(production_settings) as client:
            response = await client.get("/")

        assert response.headers["Strict-Transport-Security"].startswith("max-age=")

    async def test_request_id_is_echoed(self, client: AsyncClient) -> None:
        """Test the caller's request id comes back on the response."""
        response = await client.get("/", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"

    async def test_rate_limit_headers(self, client: AsyncClient) -> None:
        """Test admitted responses carry the remaining budget."""
        response = await client.get("/")

        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"


@pytest.mark.integration
class TestOriginPolicy:
    """Cross-origin enforcement in production."""

    async def test_preflight_from_allowed_origin(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test preflights are answered by the CORS layer."""
        async with app_client(production_settings) as client:
            response = await client.options(
                "/clientes/",
                headers={
                    "Origin": "http://localhost:5173",
                    "Access-Control-Request-Method": "POST",
                },
            )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == (
            "http://localhost:5173"
        )
        assert response.headers["Access-Control-Allow-Credentials"] == "true"
        assert response.headers["Access-Control-Max-Age"] == "86400"

    async def test_preflight_with_unsupported_method(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test preflights outside the fixed method set are refused."""
        async with app_client(production_settings) as client:
            response = await client.options(
                "/clientes/",
                headers={
                    "Origin": "http://localhost:5173",
                    "Access-Control-Request-Method": "TRACE",
                },
            )

        assert response.status_code == 400
        assert response.text == "Disallowed CORS method"

    async def test_denied_origin(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test untrusted origins are refused before rate limiting."""
        # Arrange
        async with app_client(production_settings) as client:
            # Act
            denied = await client.get(
                "/clientes/", headers={"Origin": "https://evil.example.com"}
            )
            admitted = await client.get("/clientes/")

        # Assert
        assert denied.status_code == 403
        assert denied.json() == {
            "error": "Not allowed by CORS: https://evil.example.com",
            "code": "ORIGIN_NOT_ALLOWED",
        }
        assert "X-RateLimit-Limit" not in denied.headers
        assert "X-Request-ID" in denied.headers
        assert admitted.headers["X-RateLimit-Remaining"] == "99"

    async def test_origin_not_enforced_in_development(
        self, client: AsyncClient
    ) -> None:
        """Test any origin is admitted outside production."""
        response = await client.get(
            "/", headers={"Origin": "https://evil.example.com"}
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == (
            "https://evil.example.com"
        )


@pytest.mark.integration
class TestRateLimiting:
    """Request budget."""

    async def test_request_over_budget_is_rejected(
        self, app_client: ClientFactory, small_budget_settings: Settings
    ) -> None:
        """Test the request after the budget gets a 429."""
        # Arrange
        async with app_client(small_budget_settings) as client:
            # Act
            statuses = [(await client.get("/")).status_code for _ in range(3)]
            rejected = await client.get("/")

        # Assert
        assert statuses == [200, 200, 200]
        assert rejected.status_code == 429
        body = rejected.json()
        assert body["code"] == 429
        assert body["error"] == "Too Many Requests"
        assert body["message"] == (
            "Demasiadas solicitudes. Por favor intenta nuevamente más tarde."
        )
        assert 0 < body["retryAfter"] <= 60
        assert rejected.headers["Retry-After"] == str(body["retryAfter"])
        assert "X-Content-Type-Options" in rejected.headers


@pytest.mark.integration
class TestErrorNormalization:
    """Error envelopes rendered by the application."""

    async def test_unknown_route_in_production(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test framework 404s use the error envelope."""
        async with app_client(production_settings) as client:
            response = await client.get("/inventario")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "code": "NOT_FOUND"}

    async def test_domain_not_found_in_production(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test domain errors keep their message for client statuses."""
        async with app_client(production_settings) as client:
            response = await client.get("/clientes/missing")

        assert response.status_code == 404
        assert response.json() == {
            "error": "Cliente no encontrado",
            "code": "NOT_FOUND",
        }

    async def test_unexpected_error_in_production(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test unexpected failures are rendered without internal details."""
        async with app_client(production_settings) as client:
            response = await client.get("/clientes/crash")

        assert response.status_code == 500
        assert response.json() == {
            "error": "internal server error",
            "code": "INTERNAL_ERROR",
        }
        assert "s3cret" not in response.text

    async def test_unexpected_error_keeps_response_headers(
        self, app_client: ClientFactory, production_settings: Settings
    ) -> None:
        """Test a crash from an allowed origin is still readable by the browser."""
        # Arrange
        async with app_client(production_settings) as client:
            # Act
            response = await client.get(
                "/clientes/crash", headers={"Origin": "http://localhost:5173"}
            )

        # Assert
        assert response.status_code == 500
        with pytest_check.check:
            assert response.headers["Access-Control-Allow-Origin"] == (
                "http://localhost:5173"
            )
        with pytest_check.check:
            assert response.headers["Access-Control-Allow-Credentials"] == "true"
        with pytest_check.check:
            assert "Content-Security-Policy" in response.headers
        with pytest_check.check:
            assert "X-Request-ID" in response.headers
        with pytest_check.check:
            assert response.headers["X-RateLimit-Limit"] == "100"

    async def test_unexpected_error_in_development(
        self, app_client: ClientFactory, development_settings: Settings
    ) -> None:
        """Test development responses carry the stack and request context."""
        async with app_client(development_settings) as client:
            response = await client.get("/clientes/crash")

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INTERNAL_ERROR"
        assert "ValueError" in body["stack"]
        assert body["details"]["method"] == "GET"

    async def test_validation_error(self, client: AsyncClient) -> None:
        """Test invalid parameters are rendered as 400."""
        response = await client.get("/clientes/", params={"limit": "abc"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["validation_errors"][0]["field"] == "query.limit"
