from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from couponhub.core.clock import as_utc
from couponhub.models.campaign import Campaign, CampaignProduct
from couponhub.models.coupon import Coupon
from couponhub.models.end_user import EndUser
from couponhub.models.product import Product


@dataclass(frozen=True)
class AnalyticsFilters:
    tenant_id: str
    start: date | None = None
    end: date | None = None
    campaign_id: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class CampaignFact:
    id: str
    name: str


@dataclass(frozen=True)
class ProductAverages:
    avg_value: float = 0.0
    avg_margin: float = 0.0


@dataclass(frozen=True)
class CouponFact:
    campaign_id: str
    status: str
    discount_type: str
    discount_value: str
    issued_at: datetime
    redeemed_at: datetime | None = None


@dataclass(frozen=True)
class ExportFact:
    code: str
    status: str
    issued_at: datetime
    redeemed_at: datetime | None
    campaign_id: str
    campaign_name: str | None
    first_name: str | None
    last_name: str | None
    email: str | None
    discount_type: str
    discount_value: str


class AnalyticsRepository(Protocol):
    def campaigns(self, tenant_id: str) -> list[CampaignFact]: ...

    def campaign_averages(self, tenant_id: str) -> dict[str, ProductAverages]: ...

    def coupon_facts(self, filters: AnalyticsFilters) -> list[CouponFact]: ...

    def export_facts(self, filters: AnalyticsFilters) -> list[ExportFact]: ...


class SqlAnalyticsRepository:
    """AnalyticsRepository over the relational store; every join matches tenant on both sides."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def campaigns(self, tenant_id: str) -> list[CampaignFact]:
        rows = self.db.execute(
            select(Campaign.id, Campaign.name)
            .where(Campaign.tenant_id == tenant_id)
            .order_by(Campaign.created_at.desc())
        ).all()
        return [CampaignFact(id=row.id, name=row.name) for row in rows]

    def campaign_averages(self, tenant_id: str) -> dict[str, ProductAverages]:
        stmt = (
            select(
                CampaignProduct.campaign_id,
                func.avg(Product.value).label("avg_value"),
                func.avg(Product.margin_price).label("avg_margin"),
            )
            .join(Product, and_(Product.id == CampaignProduct.product_id, Product.tenant_id == tenant_id))
            .join(Campaign, and_(Campaign.id == CampaignProduct.campaign_id, Campaign.tenant_id == tenant_id))
            .group_by(CampaignProduct.campaign_id)
        )
        return {
            row.campaign_id: ProductAverages(
                avg_value=float(row.avg_value or 0.0),
                avg_margin=float(row.avg_margin or 0.0),
            )
            for row in self.db.execute(stmt).all()
        }

    def _coupon_conditions(self, filters: AnalyticsFilters) -> list:
        conditions = [Coupon.tenant_id == filters.tenant_id]
        if filters.campaign_id:
            conditions.append(Coupon.campaign_id == filters.campaign_id)
        if filters.status:
            conditions.append(Coupon.status == filters.status)
        if filters.start is not None:
            conditions.append(Coupon.issued_at >= datetime.combine(filters.start, time.min, tzinfo=UTC))
        if filters.end is not None:
            conditions.append(Coupon.issued_at < datetime.combine(filters.end + timedelta(days=1), time.min, tzinfo=UTC))
        return conditions

    def coupon_facts(self, filters: AnalyticsFilters) -> list[CouponFact]:
        stmt = (
            select(
                Coupon.campaign_id,
                Coupon.status,
                Coupon.discount_type,
                Coupon.discount_value,
                Coupon.issued_at,
                Coupon.redeemed_at,
            )
            .where(*self._coupon_conditions(filters))
            .order_by(Coupon.issued_at.asc())
        )
        return [
            CouponFact(
                campaign_id=row.campaign_id,
                status=row.status,
                discount_type=row.discount_type,
                discount_value=row.discount_value,
                issued_at=as_utc(row.issued_at),
                redeemed_at=as_utc(row.redeemed_at),
            )
            for row in self.db.execute(stmt).all()
        ]

    def export_facts(self, filters: AnalyticsFilters) -> list[ExportFact]:
        stmt = (
            select(
                Coupon.code,
                Coupon.status,
                Coupon.issued_at,
                Coupon.redeemed_at,
                Coupon.campaign_id,
                Campaign.name.label("campaign_name"),
                EndUser.first_name,
                EndUser.last_name,
                EndUser.email,
                Coupon.discount_type,
                Coupon.discount_value,
            )
            .outerjoin(EndUser, and_(EndUser.id == Coupon.user_id, EndUser.tenant_id == Coupon.tenant_id))
            .outerjoin(Campaign, and_(Campaign.id == Coupon.campaign_id, Campaign.tenant_id == Coupon.tenant_id))
            .where(*self._coupon_conditions(filters))
            .order_by(Coupon.issued_at.desc(), Coupon.code.asc())
        )
        return [
            ExportFact(
                code=row.code,
                status=row.status,
                issued_at=as_utc(row.issued_at),
                redeemed_at=as_utc(row.redeemed_at),
                campaign_id=row.campaign_id,
                campaign_name=row.campaign_name,
                first_name=row.first_name,
                last_name=row.last_name,
                email=row.email,
                discount_type=row.discount_type,
                discount_value=row.discount_value,
            )
            for row in self.db.execute(stmt).all()
        ]
