from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from couponhub.core.metrics import http_request_duration_seconds, http_requests_total
from couponhub.core.middleware.request_logging import route_surface, route_template


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests per route template and surface (legacy, tenant or public)."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)
        started_at = time.perf_counter()
        response = await call_next(request)
        labels = {"method": request.method, "route": route_template(request), "surface": route_surface(request)}
        http_requests_total.labels(status=str(response.status_code), **labels).inc()
        http_request_duration_seconds.labels(**labels).observe(time.perf_counter() - started_at)
        return response
