from __future__ import annotations

import re

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


_BASELINE = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
# Paths carrying a form-link token or coupon code in the URL.
_BEARER_URL = re.compile(r"/form-links/[^/]+/submit$|/store/coupons/[^/]+(?:/redeem)?$")


def headers_for(path: str, *, production: bool) -> dict[str, str]:
    headers = dict(_BASELINE)
    if "/api/" in path:
        headers["Cache-Control"] = "no-store"
    if _BEARER_URL.search(path):
        headers["Referrer-Policy"] = "no-referrer"
        headers["X-Robots-Tag"] = "noindex, nofollow"
    if production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, app_env: str) -> None:
        super().__init__(app)
        self._production = app_env.lower() == "production"

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in headers_for(request.url.path, production=self._production).items():
            response.headers.setdefault(name, value)
        return response
