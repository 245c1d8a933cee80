from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException

from couponhub.api.response import error_body, validation_message
from couponhub.api.router import build_api_router
from couponhub.core.config import get_settings
from couponhub.core.errors import CouponHubError, InternalError, StoreBusyError
from couponhub.core.logging_config import configure_logging
from couponhub.core.metrics import render_metrics, store_busy_total
from couponhub.core.middleware import (
    CsrfMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from couponhub.db.guards import is_busy_error
from couponhub.db.redis_client import get_redis_client
import couponhub.db.session as db_session
from couponhub.services.auth_service import seed_defaults

settings = get_settings()
configure_logging(log_level=settings.log_level, app_env=settings.app_env)
logger = logging.getLogger("couponhub.api")


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if settings.app_env.lower() != "test":
        # Fail startup loudly when rate limiting is on and Redis is unavailable.
        get_redis_client()
    if inspect(db_session.get_engine()).has_table("tenants"):
        with db_session.session_scope() as db:
            seed_defaults(db)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    RequestSizeLimitMiddleware,
    max_request_body_bytes=settings.max_request_body_bytes,
    max_submit_body_bytes=settings.max_submit_body_bytes,
)
app.add_middleware(CsrfMiddleware, enabled=settings.csrf_enabled)
app.add_middleware(
    RateLimitMiddleware,
    enabled=settings.rate_limit_enabled,
    requests_per_minute=settings.submit_rate_limit_per_minute,
    redis_url=settings.redis_url,
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(SecurityHeadersMiddleware, app_env=settings.app_env)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(build_api_router())

if settings.metrics_enabled:
    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)


@app.exception_handler(CouponHubError)
async def couponhub_exception_handler(request: Request, exc: CouponHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request failed",
            extra={"path": request.url.path, "status_code": exc.status_code, "tenant_id": getattr(request.state, "tenant_id", None)},
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, code=exc.code))


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error_body(validation_message(exc.errors()), code="validation_error"))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Driver faults raised on paths that run outside `store_guard`, mostly plain reads."""
    tenant_id = getattr(request.state, "tenant_id", None)
    if is_busy_error(exc):
        store_busy_total.labels(operation="request").inc()
        logger.warning("store busy", extra={"path": request.url.path, "tenant_id": tenant_id})
        return await couponhub_exception_handler(request, StoreBusyError())
    logger.error("store failure", extra={"path": request.url.path, "tenant_id": tenant_id}, exc_info=exc)
    return await couponhub_exception_handler(request, InternalError())
