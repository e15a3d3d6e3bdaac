"""Fixed-window rate limiting per client identity.

Algorithm: Fixed Window Counter
    1. Each identity owns a counter and the start time of its window
    2. A request outside the current window starts a new one with count 1
    3. Otherwise the counter is incremented
    4. The request is rejected once the count exceeds the configured maximum

Window records live behind the ``WindowStore`` protocol. The in-memory
store is process-local; a shared counting store (Redis INCR with expiry,
for instance) can replace it without touching the decision logic.
"""

import math
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.api.constants import (
    DEFAULT_RETRY_AFTER_SECONDS,
    RATE_LIMIT_ERROR,
    RATE_LIMIT_LIMIT_HEADER,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
    RETRY_AFTER_HEADER,
)
from src.api.schemas.errors import RateLimitRejection
from src.api.utils.client import get_client_identity
from src.api.utils.responses import ORJSONResponse

type Clock = Callable[[], float]

# Number of increments between two sweeps of expired records
CLEANUP_INTERVAL = 1000


@dataclass(frozen=True, slots=True)
class WindowRecord:
    """Request count of one identity within its current window."""

    count: int
    window_start: float


class WindowStore(Protocol):
    """Storage capability for window records."""

    def increment(self, identity: str, window_seconds: float) -> WindowRecord:
        """Atomically count one request and return the updated record.

        A missing or expired record is replaced by a fresh window with a
        count of 1.
        """
        ...


class InMemoryWindowStore:
    """Process-local window store guarded by a lock.

    Args:
        clock: Monotonic time source in seconds.
        cleanup_interval: Increments between sweeps of expired records.
    """

    def __init__(
        self,
        clock: Clock = time.monotonic,
        cleanup_interval: int = CLEANUP_INTERVAL,
    ) -> None:
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._records: dict[str, WindowRecord] = {}
        self._lock = threading.Lock()
        self._increments = 0

    def __len__(self) -> int:
        return len(self._records)

    def increment(self, identity: str, window_seconds: float) -> WindowRecord:
        with self._lock:
            now = self._clock()
            current = self._records.get(identity)
            if current is None or now - current.window_start >= window_seconds:
                record = WindowRecord(count=1, window_start=now)
            else:
                record = WindowRecord(
                    count=current.count + 1, window_start=current.window_start
                )
            self._records[identity] = record

            self._increments += 1
            if self._increments % self._cleanup_interval == 0:
                self._prune(now, window_seconds)
            return record

    def _prune(self, now: float, window_seconds: float) -> None:
        """Drop records whose window has elapsed. Caller holds the lock."""
        expired = [
            identity
            for identity, record in self._records.items()
            if now - record.window_start >= window_seconds
        ]
        for identity in expired:
            del self._records[identity]
        if expired:
            logger.debug(
                "Pruned expired rate limit windows",
                pruned=len(expired),
                active=len(self._records),
            )


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of counting one request."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets."""
        seconds = math.ceil(self.reset_after)
        return seconds if seconds > 0 else DEFAULT_RETRY_AFTER_SECONDS


class FixedWindowRateLimiter:
    """Decide whether an identity is still within its request budget.

    Args:
        store: Window record storage (in-memory by default).
        max_requests: Requests allowed per window.
        window_seconds: Window length in seconds.
        clock: Time source, shared with the default store.
    """

    def __init__(
        self,
        store: WindowStore | None = None,
        *,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.store = store if store is not None else InMemoryWindowStore(clock)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def hit(self, identity: str) -> RateLimitDecision:
        """Count a request for an identity and decide on it."""
        record = self.store.increment(identity, self.window_seconds)
        elapsed = self._clock() - record.window_start
        return RateLimitDecision(
            allowed=record.count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - record.count, 0),
            reset_after=max(self.window_seconds - elapsed, 0.0),
        )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject callers that exceed their request budget with a 429.

    Args:
        app: The ASGI application to wrap.
        limiter: The decision component.
        message: Localized explanation sent with rejections.
        trust_proxy_headers: Whether the identity is read from proxy headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: FixedWindowRateLimiter,
        message: str,
        trust_proxy_headers: bool = False,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.message = message
        self.trust_proxy_headers = trust_proxy_headers

    @staticmethod
    def _apply_headers(response: Response, decision: RateLimitDecision) -> None:
        response.headers[RATE_LIMIT_LIMIT_HEADER] = str(decision.limit)
        response.headers[RATE_LIMIT_REMAINING_HEADER] = str(decision.remaining)
        response.headers[RATE_LIMIT_RESET_HEADER] = str(math.ceil(decision.reset_after))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Count the request and forward it or reject it.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The handler response, or a 429 rejection.
        """
        identity = get_client_identity(
            request, trust_proxy_headers=self.trust_proxy_headers
        )
        decision = self.limiter.hit(identity)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded",
                client_host=identity,
                limit=decision.limit,
                retry_after=decision.retry_after,
            )
            response: Response = ORJSONResponse(
                status_code=429,
                content=RateLimitRejection(
                    error=RATE_LIMIT_ERROR,
                    message=self.message,
                    retry_after=decision.retry_after,
                ),
                headers={RETRY_AFTER_HEADER: str(decision.retry_after)},
            )
        else:
            response = await call_next(request)

        self._apply_headers(response, decision)
        return response
