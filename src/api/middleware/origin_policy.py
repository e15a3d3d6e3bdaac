"""Cross-origin admission policy.

Decides, per request, whether a browser origin may call the API. The
same decision gates requests and selects which origins Starlette's CORS
handling echoes back. The decision itself is a pure function of the Origin
header and the configuration so that its precedence rules can be exercised
without an HTTP stack:

- outside production every origin is admitted;
- a request without an Origin header is admitted (non-browser callers);
- a hosting-platform subdomain is admitted only while no explicit
  allow-list is configured;
- otherwise the origin must match an allow-list entry exactly,
  case-insensitively.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

from src.api.constants import (
    CORS_ALLOWED_HEADERS,
    CORS_ALLOWED_METHODS,
    CORS_EXPOSED_HEADERS,
    CORS_MAX_AGE_SECONDS,
    DEFAULT_ALLOWED_ORIGINS,
    PLATFORM_DOMAIN_SUFFIXES,
)
from src.api.middleware.error_handler import error_handler
from src.core.config import Settings
from src.core.exceptions import OriginNotAllowedError

type DecisionReason = Literal[
    "non_production", "no_origin", "platform_domain", "allow_list", "not_allowed"
]


@dataclass(frozen=True, slots=True)
class OriginDecision:
    """Outcome of evaluating one Origin header."""

    allowed: bool
    reason: DecisionReason


@dataclass(frozen=True, slots=True)
class OriginPolicy:
    """Origin admission rules fixed for the process lifetime.

    Attributes:
        production: Whether enforcement is active at all.
        allow_list: Lowercased origins admitted by exact match.
        explicit: Whether ``allow_list`` came from configuration. An
            explicit list disables the platform wildcard.
        platform_suffixes: Hostname suffixes of the hosting platform.
    """

    production: bool
    allow_list: frozenset[str]
    explicit: bool
    platform_suffixes: tuple[str, ...] = PLATFORM_DOMAIN_SUFFIXES

    @classmethod
    def from_settings(cls, settings: Settings) -> "OriginPolicy":
        """Build the policy from configuration.

        The configured allow-list wins; the built-in list is used otherwise.
        """
        configured = settings.allowed_origin_list
        origins = configured or DEFAULT_ALLOWED_ORIGINS
        return cls(
            production=settings.is_production,
            allow_list=frozenset(origin.lower() for origin in origins),
            explicit=bool(configured),
        )

    def is_platform_origin(self, normalized_origin: str) -> bool:
        """Whether the origin's hostname belongs to the hosting platform."""
        hostname = urlsplit(normalized_origin).hostname or ""
        return hostname.endswith(self.platform_suffixes)

    def evaluate(self, origin: str | None) -> OriginDecision:
        """Decide whether a request with this Origin header may proceed.

        Args:
            origin: The raw Origin header, or None when absent.

        Returns:
            OriginDecision: Whether the origin is admitted and why.
        """
        if not self.production:
            return OriginDecision(allowed=True, reason="non_production")
        if not origin:
            return OriginDecision(allowed=True, reason="no_origin")

        normalized = origin.strip().lower()
        if not self.explicit and self.is_platform_origin(normalized):
            return OriginDecision(allowed=True, reason="platform_domain")
        if normalized in self.allow_list:
            return OriginDecision(allowed=True, reason="allow_list")
        return OriginDecision(allowed=False, reason="not_allowed")


class PolicyCORSMiddleware(CORSMiddleware):
    """Starlette CORS handling driven by the origin policy.

    Preflight answers, method and header checks, and the CORS response
    headers are Starlette's. Only the origin decision is replaced, so the
    platform wildcard and the allow-list precedence apply here too.

    Args:
        app: The ASGI application to wrap.
        policy: The admission rules deciding which origins are echoed.
    """

    def __init__(self, app: ASGIApp, *, policy: OriginPolicy) -> None:
        super().__init__(
            app,
            allow_origins=(),
            allow_methods=CORS_ALLOWED_METHODS,
            allow_headers=CORS_ALLOWED_HEADERS,
            allow_credentials=True,
            expose_headers=CORS_EXPOSED_HEADERS,
            max_age=CORS_MAX_AGE_SECONDS,
        )
        self.policy = policy

    def is_allowed_origin(self, origin: str) -> bool:
        return self.policy.evaluate(origin).allowed


class OriginPolicyMiddleware(BaseHTTPMiddleware):
    """Reject untrusted cross-origin callers before any other policy runs.

    Rejected requests never reach the handler: they are rendered by the
    error normalizer as 403 ``ORIGIN_NOT_ALLOWED``. Admitted requests,
    preflights included, continue to :class:`PolicyCORSMiddleware`.

    Args:
        app: The ASGI application to wrap.
        policy: The admission rules to enforce.
    """

    def __init__(self, app: ASGIApp, *, policy: OriginPolicy) -> None:
        super().__init__(app)
        self.policy = policy

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Evaluate the Origin header.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The downstream response, or a 403 for denied origins.
        """
        origin = request.headers.get("origin")
        decision = self.policy.evaluate(origin)
        normalized_origin = origin.strip().lower() if origin else None

        if not decision.allowed:
            logger.warning(
                "Origin rejected",
                origin=origin,
                normalized_origin=normalized_origin,
                allowed_origins=sorted(self.policy.allow_list),
            )
            return await error_handler(request, OriginNotAllowedError(origin or ""))

        logger.debug(
            "Origin admitted",
            origin=origin,
            normalized_origin=normalized_origin,
            reason=decision.reason,
        )
        return await call_next(request)
