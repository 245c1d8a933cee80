from __future__ import annotations

import logging
import re

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from couponhub.api.response import error_body


_PUBLIC_SUBMIT = re.compile(r"^/t/[^/]+/api/form-links/[^/]+/submit$")
logger = logging.getLogger("couponhub.api.request_size")


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects oversized bodies by Content-Length; anonymous form submissions get a tighter cap."""

    def __init__(self, app, *, max_request_body_bytes: int, max_submit_body_bytes: int) -> None:
        super().__init__(app)
        self._max_request_body_bytes = max_request_body_bytes
        self._max_submit_body_bytes = min(max_submit_body_bytes, max_request_body_bytes)

    def limit_for(self, path: str) -> int:
        if _PUBLIC_SUBMIT.match(path):
            return self._max_submit_body_bytes
        return self._max_request_body_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length is None:
            return await call_next(request)
        if not content_length.isdigit():
            return JSONResponse(status_code=400, content=error_body("Invalid Content-Length header"))
        limit = self.limit_for(request.url.path)
        if int(content_length) > limit:
            logger.info("request body rejected", extra={"method": request.method, "limit": limit})
            return JSONResponse(status_code=413, content=error_body("Payload too large", code="payload_too_large"))
        return await call_next(request)
