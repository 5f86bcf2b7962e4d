"""
Request logging middleware with structured output.

Every request is tagged with the payee operation it runs (payees.classify,
duplicates.detect, ...). Slow-request warnings use a per-operation budget:
classification and duplicate detection call external AI services and get
far more room than the pure mapping endpoints. Request bodies are never
logged, only their size.
"""
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger("meridian.api")

API_PREFIX = "/api/v1/"

# Health checks are logged at debug
HEALTH_CHECK_PATHS = frozenset({"/", "/health", "/metrics"})

DEFAULT_SLOW_MS = 2_000
SLOW_THRESHOLDS_MS = {
    "payees.classify": 120_000,
    "duplicates.detect": 60_000,
    "payees.reconcile": 30_000,
}


def operation_for(path: str) -> str:
    """'/api/v1/payees/classify' -> 'payees.classify'; other paths as-is."""
    if not path.startswith(API_PREFIX):
        return path
    return ".".join(part for part in path[len(API_PREFIX):].split("/") if part)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all API requests with timing, operation and request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        operation = operation_for(request.url.path)
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            operation=operation,
        )

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
            logger.error("request_failed", duration_ms=duration_ms, status=500)
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)

        log_data = {"duration_ms": duration_ms, "status": response.status_code}
        content_length = request.headers.get("content-length")
        if content_length:
            log_data["request_bytes"] = int(content_length)

        if response.status_code >= 500:
            logger.error("request_completed", **log_data)
        elif duration_ms > SLOW_THRESHOLDS_MS.get(operation, DEFAULT_SLOW_MS):
            logger.warning("slow_request", **log_data)
        elif response.status_code >= 400:
            logger.warning("request_completed", **log_data)
        elif request.url.path in HEALTH_CHECK_PATHS:
            logger.debug("request_completed", **log_data)
        else:
            logger.info("request_completed", **log_data)

        return response
