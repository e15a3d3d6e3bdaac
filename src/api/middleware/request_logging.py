"""HTTP request/response logging with performance monitoring.

This middleware wraps every other policy so that each transaction,
including origin rejections and rate-limit refusals, is logged once with
its outcome.

Features:
- **Request ids**: Incoming ``X-Request-ID`` is reused, otherwise generated,
  and echoed on the response
- **Context binding**: Request fields are attached to every log line
  emitted while the request is processed
- **Performance tracking**: Request duration and slow request detection
- **Exclusion patterns**: Configurable path exclusion (e.g., health checks)
- **Error handling**: Logs failures while preserving exception propagation
"""

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.api.constants import REQUEST_ID_HEADER
from src.api.utils.client import get_client_identity
from src.core.config import LogConfig
from src.core.constants import MILLISECONDS_PER_SECOND
from src.core.types import LogContext

MAX_USER_AGENT_LENGTH = 200
MAX_REQUEST_ID_LENGTH = 128


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
        trust_proxy_headers: Whether the client address is read from proxy headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        log_config: LogConfig,
        trust_proxy_headers: bool = False,
    ) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)
        self.trust_proxy_headers = trust_proxy_headers

    @staticmethod
    def _get_request_id(request: Request) -> str:
        request_id = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if request_id and len(request_id) <= MAX_REQUEST_ID_LENGTH:
            return request_id
        return str(uuid.uuid4())

    def _build_context(self, request: Request, request_id: str) -> LogContext:
        user_agent = request.headers.get("user-agent", "")
        return {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_host": get_client_identity(
                request, trust_proxy_headers=self.trust_proxy_headers
            ),
            # Truncate extremely long user agents to prevent log pollution
            "user_agent": user_agent[:MAX_USER_AGENT_LENGTH] or "unknown",
        }

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The response from the application.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        request_id = self._get_request_id(request)

        with logger.contextualize(**self._build_context(request, request_id)):
            logger.info(
                "Request started",
                query_params=(
                    dict(request.query_params) if request.query_params else None
                ),
            )

            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                elapsed = time.perf_counter() - start_time
                duration_ms = elapsed * MILLISECONDS_PER_SECOND
                logger.error(
                    "Request failed",
                    duration_ms=round(duration_ms, 2),
                    error_type=type(exc).__name__,
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                response_size=int(response.headers.get("content-length", 0)),
            )

            response.headers[REQUEST_ID_HEADER] = request_id

            if duration_ms > self.log_config.slow_request_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    duration_ms=round(duration_ms, 2),
                    threshold_ms=self.log_config.slow_request_threshold_ms,
                )

            return response
