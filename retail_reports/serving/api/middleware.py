"""
API Middleware

Request logging, per-client rate limiting and response security headers.
Health probes and the metrics endpoint are scraped often, so they are
logged at debug level and never rate limited.
"""

import asyncio
import time
import uuid
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Tuple

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

PROBE_PATHS: Tuple[str, ...] = ("/api/v1/health", "/metrics")


def is_probe(path: str) -> bool:
    return path.startswith(PROBE_PATHS)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request ID to the log context and log each request once it completes"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        log = logger.debug if is_probe(request.url.path) else logger.info
        log(
            "Request handled",
            method=request.method,
            params=dict(request.query_params) or None,
            status_code=response.status_code,
            duration_ms=round(elapsed_ms, 2),
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding window limiter keyed by client address.

    Counters live in process memory, so each worker enforces its own limit.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self._clock = clock
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        """Forget clients with no hits inside the current window"""
        idle = [c for c, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for client in idle:
            del self._hits[client]
        self._last_sweep = now

    async def _admit(self, client: str) -> int:
        """Record a hit and return the remaining allowance, or -1 when over the limit"""
        now = self._clock()
        async with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            hits = self._hits[client]
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return -1
            hits.append(now)
            return self.max_requests - len(hits)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_probe(request.url.path):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        remaining = await self._admit(client)
        if remaining < 0:
            logger.warning("Rate limit exceeded", client=client, limit=self.max_requests)
            return JSONResponse(
                status_code=429,
                content={"error": "RateLimitExceeded", "message": "Too many report requests"},
                headers={"Retry-After": str(self.window_seconds)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    # Reports reflect live stock; never serve them from a cache
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response
