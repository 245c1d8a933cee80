from __future__ import annotations

import logging
import re
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from couponhub.db.redis_client import build_redis_client


_WINDOW_SECONDS = 60.0
_THROTTLED_ROUTES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("login", re.compile(r"^/api/auth/login$")),
    ("submit", re.compile(r"^/t/[^/]+/api/form-links/[^/]+/submit$")),
)
logger = logging.getLogger("couponhub.api.rate_limit")


def throttle_scope(method: str, path: str) -> str | None:
    if method.upper() != "POST":
        return None
    for scope, pattern in _THROTTLED_ROUTES:
        if pattern.match(path):
            return scope
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limit on the unauthenticated POST endpoints (login, form submission)."""

    def __init__(self, app, *, enabled: bool, requests_per_minute: int, redis_url: str) -> None:
        super().__init__(app)
        self._enabled = enabled
        self._requests_per_minute = max(1, int(requests_per_minute))
        self._redis = build_redis_client(redis_url, timeout_seconds=0.5)

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)
        scope = throttle_scope(request.method, request.url.path)
        if scope is None:
            return await call_next(request)

        client_ip = request.client.host if request.client is not None and request.client.host else "unknown"
        now = time.time()
        cutoff = now - _WINDOW_SECONDS
        key = f"rate_limit:{scope}:{client_ip}"
        try:
            pipeline = self._redis.pipeline(transaction=True)
            pipeline.zadd(key, {str(now): now})
            pipeline.zremrangebyscore(key, 0, cutoff)
            pipeline.zcard(key)
            pipeline.expire(key, 120)
            _added, _removed, request_count, _expiry = pipeline.execute()
        except RedisError:
            logger.warning("rate_limit_redis_unavailable_fail_open")
            return await call_next(request)

        if int(request_count) > self._requests_per_minute:
            logger.info("rate limit exceeded", extra={"path": request.url.path})
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests, retry later"},
                headers={"Retry-After": str(int(_WINDOW_SECONDS))},
            )
        return await call_next(request)
