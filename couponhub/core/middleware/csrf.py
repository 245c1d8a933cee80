from __future__ import annotations

import logging
import re

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from couponhub.core.security import verify_csrf_token


_SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
_PROTECTED_PREFIXES = ("/api/admin", "/api/store")
_TENANT_API = re.compile(r"^/t/[^/]+/api/")
_EXEMPT = (
    re.compile(r"^/api/auth/login$"),
    re.compile(r"^/t/[^/]+/api/form-links/[^/]+/submit$"),
)
logger = logging.getLogger("couponhub.api.csrf")


def requires_csrf(method: str, path: str) -> bool:
    if method.upper() in _SAFE_METHODS:
        return False
    if any(pattern.match(path) for pattern in _EXEMPT):
        return False
    return path.startswith(_PROTECTED_PREFIXES) or bool(_TENANT_API.match(path))


class CsrfMiddleware(BaseHTTPMiddleware):
    """Mutating operator requests must echo the token from the csrf-token endpoint."""

    def __init__(self, app, *, enabled: bool) -> None:
        super().__init__(app)
        self._enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if not self._enabled or not requires_csrf(request.method, request.url.path):
            return await call_next(request)

        authorization = request.headers.get("Authorization", "")
        scheme, _, session_token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not session_token:
            # No session: let the route's authentication answer with 401.
            return await call_next(request)
        if not verify_csrf_token(session_token, request.headers.get("X-CSRF-Token", "")):
            logger.debug("csrf token rejected", extra={"method": request.method, "path": request.url.path})
            return JSONResponse(status_code=403, content={"error": "Invalid CSRF token"})
        return await call_next(request)
