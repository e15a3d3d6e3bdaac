"""FastAPI application initialization and configuration module.

This module builds the Optica API application. It handles:
- Application lifecycle management (startup/shutdown)
- Middleware registration in the correct order
- Exception handler registration
- Service endpoints and domain router mounting

The module follows a layered middleware approach where middleware are
executed in reverse order of registration, ensuring proper request/response
processing flow.
"""

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from loguru import logger

from src.api.middleware.error_handler import (
    UnhandledErrorMiddleware,
    register_exception_handlers,
)
from src.api.middleware.origin_policy import (
    OriginPolicy,
    OriginPolicyMiddleware,
    PolicyCORSMiddleware,
)
from src.api.middleware.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from src.api.middleware.request_logging import RequestLoggingMiddleware
from src.api.middleware.security_headers import SecurityHeadersMiddleware
from src.api.routes import mount_domain_routers
from src.api.routes.service import router as service_router
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.infrastructure.database.session import close_database


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown initiated")
    await close_database()
    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    *,
    domain_routers: Mapping[str, APIRouter] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        domain_routers: Routers supplied by the domain packages, keyed by
            route prefix.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.settings = settings

    # Register exception handlers BEFORE middleware
    register_exception_handlers(application)

    # Order is important: middleware are executed in reverse order of registration
    # So the last middleware added is the first to process requests

    # 6. Unexpected errors (innermost)
    application.add_middleware(UnhandledErrorMiddleware)

    # 5. Rate limiting
    rate_limit_config = settings.rate_limit_config
    application.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowRateLimiter(
            max_requests=rate_limit_config.max_requests,
            window_seconds=rate_limit_config.window_seconds,
        ),
        message=rate_limit_config.message,
        trust_proxy_headers=settings.trust_proxy_headers,
    )

    # 4. Security headers
    application.add_middleware(
        SecurityHeadersMiddleware,
        api_base_url=settings.api_base_url,
        production=settings.is_production,
    )

    origin_policy = OriginPolicy.from_settings(settings)

    # 3. CORS preflights and response headers
    application.add_middleware(PolicyCORSMiddleware, policy=origin_policy)

    # 2. Origin policy (rejects untrusted browser origins before anything else)
    application.add_middleware(OriginPolicyMiddleware, policy=origin_policy)

    # 1. Request logging (outermost, logs every outcome)
    application.add_middleware(
        RequestLoggingMiddleware,
        log_config=settings.log_config,
        trust_proxy_headers=settings.trust_proxy_headers,
    )

    application.include_router(service_router)
    mount_domain_routers(application, domain_routers or {})

    return application
