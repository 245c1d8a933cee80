from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger("couponhub.api")


def route_template(request: Request) -> str:
    """Matched route path, so form-link tokens and coupon codes never reach logs or labels."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def route_surface(request: Request) -> str:
    route_name = getattr(request.scope.get("route"), "name", None) or ""
    surface, sep, _ = route_name.partition(":")
    return surface if sep else "public"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started_at = time.perf_counter()
        response = await call_next(request)
        response.headers.setdefault("X-Request-ID", request_id)
        if response.status_code >= 500:
            level = logging.WARNING
        elif request.url.path == "/api/health":
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            "http.request",
            extra={
                "request_id": request_id,
                "tenant_id": getattr(request.state, "tenant_id", None),
                "tenant_slug": request.path_params.get("tenant_slug"),
                "method": request.method,
                "route": route_template(request),
                "surface": route_surface(request),
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started_at) * 1000, 1),
            },
        )
        return response
