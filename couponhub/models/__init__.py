from couponhub.models.audit_log import AuditLog
from couponhub.models.auth_user import AuthUser
from couponhub.models.campaign import Campaign, CampaignProduct
from couponhub.models.coupon import Coupon
from couponhub.models.end_user import EndUser, UserCustomData
from couponhub.models.form_link import FormLink
from couponhub.models.product import Product
from couponhub.models.tenant import Tenant

__all__ = [
    "AuditLog",
    "AuthUser",
    "Campaign",
    "CampaignProduct",
    "Coupon",
    "EndUser",
    "FormLink",
    "Product",
    "Tenant",
    "UserCustomData",
]
