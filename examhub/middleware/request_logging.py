"""
Request/response logging middleware.
"""
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from examhub.core.analytics import AnalyticsTracker
from examhub.core.logging_config import request_id_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request and its response, and correlate them with a request id.

    The id is taken from the X-Request-ID header when the client sends one,
    otherwise generated, and echoed back on the response. Requests slower
    than slow_request_threshold seconds are also reported as analytics
    events.
    """

    def __init__(self, app, slow_request_threshold: float = 1.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)

        start_time = time.perf_counter()
        method = request.method
        path = str(request.url.path)

        logger.info("Incoming request", extra={"method": method, "path": path})

        response = await call_next(request)

        duration = time.perf_counter() - start_time
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id

        extra_fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 2),
        }
        if status_code >= 500:
            logger.error("Server error response", extra=extra_fields)
        elif status_code >= 400:
            logger.warning("Client error response", extra=extra_fields)
        else:
            logger.info("Request completed", extra=extra_fields)

        if duration > self.slow_request_threshold:
            AnalyticsTracker.track_slow_request(
                method=method,
                path=path,
                duration_seconds=round(duration, 3),
                status_code=status_code,
            )

        return response
