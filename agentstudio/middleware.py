"""Request middleware for tracing and logging."""

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from agentstudio.logging import bind_context, clear_context, get_logger
from agentstudio.metrics import record_request

logger = get_logger(__name__)


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Adds request/correlation ids, timing logs and request metrics.

    The caller's owner id (when the identity header is present) is bound
    into the log context for every line emitted while handling the request.
    """

    def __init__(self, app, owner_header: str = "X-Owner-ID"):
        super().__init__(app)
        self.owner_header = owner_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        correlation_id = request.headers.get("X-Correlation-ID") or request_id

        clear_context()
        bind_context(
            request_id=request_id,
            correlation_id=correlation_id,
            owner_id=request.headers.get(self.owner_header),
            method=request.method,
            path=request.url.path,
        )
        request.state.request_id = request_id
        request.state.correlation_id = correlation_id

        logger.info("request_started")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            duration = time.perf_counter() - start_time
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            if not request.url.path.startswith("/metrics"):
                route = request.scope.get("route")
                record_request(
                    method=request.method,
                    path=getattr(route, "path", request.url.path),
                    status_code=response.status_code,
                    duration=duration,
                )
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            clear_context()
