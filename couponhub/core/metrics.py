from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


http_requests_total = Counter(
    "couponhub_http_requests_total",
    "Total number of HTTP requests.",
    ["method", "route", "surface", "status"],
)

http_request_duration_seconds = Histogram(
    "couponhub_http_request_duration_seconds",
    "HTTP request duration in seconds.",
    ["method", "route", "surface"],
)

coupons_issued_total = Counter(
    "couponhub_coupons_issued_total",
    "Coupons issued by consuming a form link.",
)

coupons_redeemed_total = Counter(
    "couponhub_coupons_redeemed_total",
    "Coupons redeemed at the store.",
)

form_links_generated_total = Counter(
    "couponhub_form_links_generated_total",
    "Single-use form link tokens generated.",
)

token_collisions_total = Counter(
    "couponhub_token_collisions_total",
    "Random code or token draws rejected because the value already existed.",
    ["kind"],
)

campaigns_auto_deactivated_total = Counter(
    "couponhub_campaigns_auto_deactivated_total",
    "Campaigns flipped to inactive after their expiry date passed.",
)

coupons_auto_expired_total = Counter(
    "couponhub_coupons_auto_expired_total",
    "Active coupons marked expired after the campaign coupon expiry date passed.",
)

store_busy_total = Counter(
    "couponhub_store_busy_total",
    "Operations rejected because the database reported a lock or busy condition.",
    ["operation"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
