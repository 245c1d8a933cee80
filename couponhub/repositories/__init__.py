from couponhub.repositories.analytics import AnalyticsRepository, SqlAnalyticsRepository
from couponhub.repositories.audit_logs import AuditLogRepository
from couponhub.repositories.campaigns import CampaignRepository
from couponhub.repositories.coupons import CouponRepository
from couponhub.repositories.end_users import EndUserRepository
from couponhub.repositories.form_links import FormLinkRepository
from couponhub.repositories.products import ProductRepository

__all__ = [
    "AnalyticsRepository",
    "AuditLogRepository",
    "CampaignRepository",
    "CouponRepository",
    "EndUserRepository",
    "FormLinkRepository",
    "ProductRepository",
    "SqlAnalyticsRepository",
]
