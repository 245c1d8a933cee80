from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from couponhub.core.clock import as_utc, utcnow
from couponhub.core.metrics import campaigns_auto_deactivated_total, coupons_auto_expired_total
from couponhub.db.guards import store_guard
from couponhub.events import emit_event
from couponhub.repositories.campaigns import CampaignRepository
from couponhub.repositories.coupons import CouponRepository


logger = logging.getLogger("couponhub.expiry")


@dataclass
class SettlementResult:
    campaign_ids: list[str] = field(default_factory=list)
    coupon_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.campaign_ids or self.coupon_ids)


def settle_expiry(db: Session, tenant_id: str, *, now: datetime | None = None) -> SettlementResult:
    """Apply time-driven transitions for one tenant and return the ids that changed.

    Active campaigns past `expiry_date` become inactive; active coupons whose campaign
    `coupon_expiry_date` has passed become expired. Running it again without the clock
    moving changes nothing, and inactive campaigns are never reactivated.
    """
    current = as_utc(now) or utcnow()
    campaigns = CampaignRepository(db)
    coupons = CouponRepository(db)
    result = SettlementResult()

    with store_guard(db, operation="settle_expiry", tenant_id=tenant_id):
        overdue = [
            campaign.id
            for campaign in campaigns.active_with_expiry(tenant_id)
            if as_utc(campaign.expiry_date) < current
        ]
        lapsed = [
            campaign.id
            for campaign in campaigns.with_coupon_expiry(tenant_id)
            if as_utc(campaign.coupon_expiry_date) < current
        ]
        expiring = coupons.active_ids_for_campaigns(tenant_id, lapsed)
        if not overdue and not expiring:
            return result

        campaigns.deactivate_many(tenant_id, overdue)
        coupons.expire_many(tenant_id, expiring)
        result.campaign_ids = overdue
        result.coupon_ids = expiring
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="expiry.settled",
            payload={"campaign_ids": overdue, "coupon_count": len(expiring)},
        )
        db.commit()

    if result.campaign_ids:
        campaigns_auto_deactivated_total.inc(len(result.campaign_ids))
    if result.coupon_ids:
        coupons_auto_expired_total.inc(len(result.coupon_ids))
    logger.info(
        "expiry settled",
        extra={
            "tenant_id": tenant_id,
            "operation": "settle_expiry",
            "campaigns": len(result.campaign_ids),
            "coupons": len(result.coupon_ids),
        },
    )
    return result
