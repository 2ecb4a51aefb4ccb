"""Request correlation and HTTP metrics for the dashboard API"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dwolla_dashboard.infrastructure.observability.metrics import request_duration_histogram

REQUEST_ID_HEADER = "X-Request-ID"

# Scrape and liveness probes stay out of the access log and the histogram
UNMEASURED_PATHS = ("/metrics", "/health")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an id for log correlation.

    The GUI may send its own X-Request-ID to tie a click to backend log
    lines; otherwise one is generated. The id is echoed on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record latency per route template and emit one JSON access line"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNMEASURED_PATHS:
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(duration)

        logging.info(
            f"{request.method} {endpoint} {response.status_code}",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "status": response.status_code,
                "duration_ms": round(duration * 1000, 2),
            },
        )
        return response
