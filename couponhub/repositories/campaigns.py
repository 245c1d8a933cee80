from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from couponhub.models.campaign import Campaign, CampaignProduct
from couponhub.models.product import Product


class CampaignRepository:
    """Tenant-scoped access to campaigns and their product links."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, tenant_id: str) -> list[Campaign]:
        return (
            self.db.query(Campaign)
            .filter(Campaign.tenant_id == tenant_id)
            .order_by(Campaign.created_at.desc())
            .all()
        )

    def options(self, tenant_id: str) -> list[Campaign]:
        return (
            self.db.query(Campaign)
            .filter(Campaign.tenant_id == tenant_id)
            .order_by(Campaign.name.asc())
            .all()
        )

    def get(self, tenant_id: str, campaign_id: str) -> Campaign | None:
        return (
            self.db.query(Campaign)
            .filter(Campaign.id == campaign_id, Campaign.tenant_id == tenant_id)
            .first()
        )

    def code_exists(self, tenant_id: str, code: str) -> bool:
        stmt = select(Campaign.id).where(Campaign.tenant_id == tenant_id, Campaign.campaign_code == code)
        return self.db.execute(stmt).first() is not None

    def add(self, campaign: Campaign) -> Campaign:
        self.db.add(campaign)
        self.db.flush()
        return campaign

    def set_active(self, tenant_id: str, campaign_id: str, active: bool) -> int:
        result = self.db.execute(
            update(Campaign)
            .where(Campaign.id == campaign_id, Campaign.tenant_id == tenant_id)
            .values(is_active=active)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def active_with_expiry(self, tenant_id: str) -> list[Campaign]:
        return (
            self.db.query(Campaign)
            .filter(
                Campaign.tenant_id == tenant_id,
                Campaign.is_active.is_(True),
                Campaign.expiry_date.is_not(None),
            )
            .all()
        )

    def deactivate_many(self, tenant_id: str, campaign_ids: list[str]) -> int:
        if not campaign_ids:
            return 0
        result = self.db.execute(
            update(Campaign)
            .where(
                Campaign.tenant_id == tenant_id,
                Campaign.id.in_(campaign_ids),
                Campaign.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def with_coupon_expiry(self, tenant_id: str) -> list[Campaign]:
        return (
            self.db.query(Campaign)
            .filter(Campaign.tenant_id == tenant_id, Campaign.coupon_expiry_date.is_not(None))
            .all()
        )

    def delete(self, tenant_id: str, campaign_id: str) -> int:
        result = self.db.execute(
            delete(Campaign)
            .where(Campaign.id == campaign_id, Campaign.tenant_id == tenant_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def products(self, tenant_id: str, campaign_id: str) -> list[Product]:
        return (
            self.db.query(Product)
            .join(CampaignProduct, CampaignProduct.product_id == Product.id)
            .join(Campaign, Campaign.id == CampaignProduct.campaign_id)
            .filter(
                CampaignProduct.campaign_id == campaign_id,
                Campaign.tenant_id == tenant_id,
                Product.tenant_id == tenant_id,
            )
            .order_by(Product.name.asc())
            .all()
        )

    def owned_product_ids(self, tenant_id: str, product_ids: list[str]) -> set[str]:
        if not product_ids:
            return set()
        stmt = select(Product.id).where(Product.tenant_id == tenant_id, Product.id.in_(product_ids))
        return set(self.db.scalars(stmt).all())

    def replace_products(self, campaign_id: str, product_ids: list[str]) -> None:
        self.db.execute(delete(CampaignProduct).where(CampaignProduct.campaign_id == campaign_id))
        for product_id in product_ids:
            self.db.add(CampaignProduct(campaign_id=campaign_id, product_id=product_id))
        self.db.flush()
