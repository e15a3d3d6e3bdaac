"""Global exception handling for the FastAPI application.

This module is the single point where any failure surfacing from request
processing is classified, logged and rendered. The same normalizer handles
application errors, Starlette HTTP exceptions, request validation errors
and unexpected exceptions, so every caller sees one envelope shape.

In production only 400/401/403/404 keep their message; every other status
is rendered with a fixed generic body so internal details never leak.
Outside production the envelope also carries the stack trace and request
context to aid local debugging.
"""

import contextlib
import traceback
from collections.abc import Awaitable, Callable
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.constants import (
    CLIENT_VISIBLE_STATUSES,
    GENERIC_REQUEST_ERROR_MESSAGE,
    GENERIC_SERVER_ERROR_MESSAGE,
    VALIDATION_FAILED_MESSAGE,
)
from src.api.schemas.errors import ErrorEnvelope
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.error_context import sanitize_dict, sanitize_headers
from src.core.exceptions import ErrorCode, OpticaError

_FALLBACK_BODY = b'{"error":"internal server error","code":"INTERNAL_ERROR"}'

_STATUS_ERROR_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    429: ErrorCode.RATE_LIMITED,
}


def _request_settings(request: Request) -> Settings:
    """Settings of the application serving the request."""
    app = request.scope.get("app")
    settings = getattr(getattr(app, "state", None), "settings", None)
    if isinstance(settings, Settings):
        return settings
    return get_settings()


def resolve_status_code(exc: Exception) -> int:
    """Resolve the HTTP status an exception should surface with.

    An explicit status carried by the error object wins; anything else is
    a 500.

    Args:
        exc: The exception to classify.

    Returns:
        int: An HTTP status code in the 4xx/5xx range.
    """
    if isinstance(exc, RequestValidationError):
        return 400
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and 400 <= status_code < 600:  # noqa: PLR2004
        return status_code
    return 500


def resolve_error_code(exc: Exception, status_code: int) -> str:
    """Resolve the machine-readable code for an exception.

    Args:
        exc: The exception to classify.
        status_code: The status already resolved for it.

    Returns:
        str: The error code sent to the caller.
    """
    if isinstance(exc, OpticaError):
        return exc.error_code
    if isinstance(exc, RequestValidationError):
        return ErrorCode.VALIDATION_ERROR.value
    if status_code >= 500:  # noqa: PLR2004
        return ErrorCode.INTERNAL_ERROR.value
    if isinstance(exc, HTTPException):
        return _STATUS_ERROR_CODES.get(status_code, ErrorCode.REQUEST_ERROR).value
    return type(exc).__name__ or ErrorCode.REQUEST_ERROR.value


def resolve_message(exc: Exception, status_code: int) -> str:
    """Extract the human-readable message of an exception."""
    if isinstance(exc, OpticaError):
        return exc.message
    if isinstance(exc, RequestValidationError):
        return VALIDATION_FAILED_MESSAGE
    if isinstance(exc, HTTPException):
        if isinstance(exc.detail, str) and exc.detail:
            return exc.detail
        return HTTPStatus(status_code).phrase
    return str(exc)


def build_error_envelope(
    exc: Exception, request: Request, *, production: bool
) -> tuple[int, ErrorEnvelope]:
    """Classify an exception and build the envelope sent to the caller.

    Args:
        exc: The exception to render.
        request: The request that failed.
        production: Whether internal details must be redacted.

    Returns:
        tuple[int, ErrorEnvelope]: The status code and the response body.
    """
    status_code = resolve_status_code(exc)
    error_code = resolve_error_code(exc, status_code)
    message = resolve_message(exc, status_code)

    if production:
        if status_code in CLIENT_VISIBLE_STATUSES:
            return status_code, ErrorEnvelope(
                error=message or GENERIC_REQUEST_ERROR_MESSAGE,
                code=error_code or ErrorCode.REQUEST_ERROR.value,
            )
        return status_code, ErrorEnvelope(
            error=GENERIC_SERVER_ERROR_MESSAGE,
            code=ErrorCode.INTERNAL_ERROR.value,
        )

    details: dict[str, object] = {"url": str(request.url), "method": request.method}
    if isinstance(exc, OpticaError) and exc.context:
        details["context"] = sanitize_dict(exc.context)
    if isinstance(exc, RequestValidationError):
        details["validation_errors"] = [
            {
                "field": ".".join(str(loc) for loc in error.get("loc", ())),
                "message": error.get("msg", "Invalid value"),
            }
            for error in exc.errors()
        ]

    return status_code, ErrorEnvelope(
        error=message or type(exc).__name__,
        code=error_code,
        stack="".join(traceback.format_exception(exc)),
        details=details,
    )


def render_error(request: Request, exc: Exception) -> Response:
    """Log an exception and render it as a normalized JSON response.

    Args:
        request: The request that failed.
        exc: The exception to render.

    Returns:
        Response: ORJSONResponse carrying the error envelope.
    """
    settings = _request_settings(request)
    status_code, envelope = build_error_envelope(
        exc, request, production=settings.is_production
    )

    logger.opt(exception=exc).error(
        "Unhandled error",
        error_name=type(exc).__name__,
        error_message=str(exc),
        error_code=resolve_error_code(exc, status_code),
        status_code=status_code,
        method=request.method,
        url=str(request.url),
        headers=sanitize_headers(request.headers.items()),
    )

    headers = exc.headers if isinstance(exc, HTTPException) else None
    return ORJSONResponse(status_code=status_code, content=envelope, headers=headers)


async def error_handler(request: Request, exc: Exception) -> Response:
    """Terminal handler for every exception surfacing from a request.

    This handler never raises: if logging or serialization fails, a minimal
    generic 500 body is returned instead.

    Args:
        request: The FastAPI request that caused the exception
        exc: The exception to handle

    Returns:
        Response: The normalized error response
    """
    try:
        return render_error(request, exc)
    except Exception:  # noqa: BLE001
        with contextlib.suppress(Exception):
            logger.exception(
                "Error normalizer failed while handling {}", type(exc).__name__
            )
        return Response(
            content=_FALLBACK_BODY,
            status_code=500,
            media_type="application/json",
        )


def register_exception_handlers(app: FastAPI) -> None:
    """Register the error normalizer with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(OpticaError, error_handler)
    app.add_exception_handler(RequestValidationError, error_handler)
    app.add_exception_handler(HTTPException, error_handler)
    app.add_exception_handler(Exception, error_handler)

    logger.debug("Exception handlers registered")


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Render unexpected exceptions inside the middleware stack.

    Starlette sends handlers registered for ``Exception`` to its outermost
    error middleware, past every other middleware. Registered innermost,
    this middleware turns such failures into a normalized response while
    the CORS, security, rate-limit and request-id layers still wrap it.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Pass the request through, normalizing any exception it raises.

        Args:
            request: The incoming HTTP request.
            call_next: The route handler.

        Returns:
            Response: The handler response or the normalized error.
        """
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await error_handler(request, exc)
