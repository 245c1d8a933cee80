from couponhub.core.middleware.csrf import CsrfMiddleware
from couponhub.core.middleware.metrics import MetricsMiddleware
from couponhub.core.middleware.rate_limit import RateLimitMiddleware
from couponhub.core.middleware.request_logging import RequestLoggingMiddleware
from couponhub.core.middleware.request_size_limit import RequestSizeLimitMiddleware
from couponhub.core.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "CsrfMiddleware",
    "MetricsMiddleware",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "RequestSizeLimitMiddleware",
    "SecurityHeadersMiddleware",
]
