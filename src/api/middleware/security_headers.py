"""Security headers middleware for adding protective headers to responses."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.api.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_HSTS_MAX_AGE,
    KNOWN_APPLICATION_ORIGINS,
)

# Cross-Origin-Embedder-Policy is never sent; resource policy is cross-origin.
STATIC_SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Origin-Agent-Cluster": "?1",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def build_content_security_policy(
    api_base_url: str | None = None, *, production: bool = False
) -> str:
    """Build the Content-Security-Policy header value.

    Args:
        api_base_url: Public API address the front-end connects to.
        production: Whether to force browsers onto HTTPS.

    Returns:
        str: The serialized policy.
    """
    connect_sources = ["'self'", api_base_url or DEFAULT_API_BASE_URL]
    connect_sources.extend(
        origin for origin in KNOWN_APPLICATION_ORIGINS if origin not in connect_sources
    )

    directives = [
        "default-src 'self'",
        "base-uri 'self'",
        "form-action 'self'",
        "frame-ancestors 'self'",
        "style-src 'self' 'unsafe-inline'",
        "script-src 'self'",
        "img-src 'self' data: https:",
        f"connect-src {' '.join(connect_sources)}",
        "font-src 'self' https: data:",
        "object-src 'none'",
    ]
    if production:
        directives.append("upgrade-insecure-requests")

    return "; ".join(directives)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Every response receives the content-security policy and the static
    headers above. HSTS is only sent in production, where the service is
    reached over HTTPS.

    Args:
        app: The ASGI application to wrap.
        api_base_url: Public API address trusted by ``connect-src``.
        production: Whether production-only headers are emitted.
        hsts_max_age: Max age for HSTS in seconds (defaults to 180 days).
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        api_base_url: str | None = None,
        production: bool = False,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
    ) -> None:
        super().__init__(app)
        self.production = production
        self.hsts_max_age = hsts_max_age
        self.content_security_policy = build_content_security_policy(
            api_base_url, production=production
        )

    def _build_hsts_header(self) -> str:
        return f"max-age={self.hsts_max_age}; includeSubDomains"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The HTTP response with security headers added.
        """
        response = await call_next(request)

        response.headers["Content-Security-Policy"] = self.content_security_policy
        for name, value in STATIC_SECURITY_HEADERS.items():
            response.headers[name] = value

        if self.production:
            response.headers["Strict-Transport-Security"] = self._build_hsts_header()

        return response
