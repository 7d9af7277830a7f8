"""Prometheus metrics middleware for HTTP request instrumentation.

Collects HTTP request metrics:
- Request count by method, endpoint, status code
- Request duration histogram
- In-flight requests gauge
"""

import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mainwebdb.metrics import REQUEST_COUNT, REQUEST_DURATION, REQUEST_IN_FLIGHT

logger = structlog.get_logger()

# Collection segment -> placeholder for the id that follows it
ID_SEGMENTS = {
    "databases": "{database_id}",
    "tables": "{table_id}",
    "rows": "{row_id}",
    "api-keys": "{key_id}",
    "copyright-strikes": "{strike_id}",
}


def normalize_path(path: str) -> str:
    """
    Normalize path for metrics labels to avoid high cardinality.

    Examples:
        /databases/4f1c... -> /databases/{database_id}
        /databases/4f1c.../tables/9ab2.../rows ->
            /databases/{database_id}/tables/{table_id}/rows
        /copyright-strikes/77e0.../dismiss -> /copyright-strikes/{strike_id}/dismiss
    """
    parts = [p for p in path.strip("/").split("/") if p]
    normalized = []

    i = 0
    while i < len(parts):
        part = parts[i]
        normalized.append(part)
        if part in ID_SEGMENTS and i + 1 < len(parts):
            normalized.append(ID_SEGMENTS[part])
            i += 2
            continue
        i += 1

    return "/" + "/".join(normalized) if normalized else "/"


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware that collects Prometheus metrics for HTTP requests.

    Metrics collected:
    - mainwebdb_requests_total: Counter by method, endpoint, status_code
    - mainwebdb_request_duration_seconds: Histogram by method, endpoint
    - mainwebdb_requests_in_flight: Gauge by method
    """

    SKIP_PATHS = {"/metrics", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        method = request.method

        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        endpoint = normalize_path(request.url.path)
        REQUEST_IN_FLIGHT.labels(method=method).inc()
        start_time = time.perf_counter()
        status_code = "500"

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            duration = time.perf_counter() - start_time
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=status_code).inc()
            REQUEST_IN_FLIGHT.labels(method=method).dec()

        return response
