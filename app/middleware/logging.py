"""Request logging with a correlation id per request."""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("app.requests")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Probes hit these every few seconds
_QUIET_PATHS = {"/api/v1/health", "/api/v1/live"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Propagates or generates X-Correlation-ID and logs each request."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                f"[{correlation_id}] {request.method} {request.url.path} failed after {duration_ms:.1f}ms"
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                f"[{correlation_id}] {request.method} {request.url.path} "
                f"-> {response.status_code} ({duration_ms:.1f}ms)"
            )
        return response
