"""Structured request logging middleware."""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cadence.config import get_settings

logger = structlog.get_logger()
settings = get_settings()

# Polled by load balancers; logged at debug only
QUIET_PATHS = frozenset(
    {
        "/health",
        f"{settings.api_prefix}/health",
        f"{settings.api_prefix}/health/ready",
    }
)


def is_quiet_path(path: str) -> bool:
    return path.rstrip("/") in QUIET_PATHS


class LoggingMiddleware(BaseHTTPMiddleware):
    """Binds request context into structlog and logs each request with timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        path = request.url.path
        log = logger.debug if is_quiet_path(path) else logger.info

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=getattr(request.state, "request_id", "unknown"),
            method=request.method,
            path=path,
            client_ip=request.client.host if request.client else "unknown",
        )

        log("request_started")
        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.exception("request_failed", error=str(exc), duration_ms=duration_ms)
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
