from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import Session

from couponhub.models.campaign import Campaign
from couponhub.models.coupon import Coupon
from couponhub.models.end_user import EndUser, UserCustomData


class EndUserRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, tenant_id: str, user_id: str) -> EndUser | None:
        return self.db.query(EndUser).filter(EndUser.id == user_id, EndUser.tenant_id == tenant_id).first()

    def list(
        self,
        tenant_id: str,
        *,
        search: str | None = None,
        campaign_names: list[str] | None = None,
    ) -> list[tuple[EndUser, int | None, datetime | None, datetime | None]]:
        """Users with coupon totals and first/last issuance, most recent issuance first."""
        stats = (
            select(
                Coupon.user_id.label("user_id"),
                func.count(Coupon.id).label("total"),
                func.min(Coupon.issued_at).label("first_issued"),
                func.max(Coupon.issued_at).label("last_issued"),
            )
            .where(Coupon.tenant_id == tenant_id)
            .group_by(Coupon.user_id)
            .subquery()
        )
        query = (
            self.db.query(EndUser, stats.c.total, stats.c.first_issued, stats.c.last_issued)
            .outerjoin(stats, stats.c.user_id == EndUser.id)
            .filter(EndUser.tenant_id == tenant_id)
        )
        if search:
            query = query.filter(func.lower(EndUser.last_name).like(f"%{search.lower()}%"))
        if campaign_names:
            holders = (
                select(Coupon.user_id)
                .join(Campaign, and_(Campaign.id == Coupon.campaign_id, Campaign.tenant_id == Coupon.tenant_id))
                .where(Coupon.tenant_id == tenant_id, Campaign.name.in_(campaign_names))
            )
            query = query.filter(EndUser.id.in_(holders))
        return query.order_by(stats.c.last_issued.desc().nulls_last(), EndUser.email.asc()).all()

    def campaign_names(self, tenant_id: str, user_ids: list[str]) -> dict[str, list[str]]:
        if not user_ids:
            return {}
        rows = self.db.execute(
            select(Coupon.user_id, Campaign.name)
            .join(Campaign, and_(Campaign.id == Coupon.campaign_id, Campaign.tenant_id == Coupon.tenant_id))
            .where(Coupon.tenant_id == tenant_id, Coupon.user_id.in_(user_ids))
            .distinct()
            .order_by(Campaign.name.asc())
        ).all()
        names: dict[str, list[str]] = defaultdict(list)
        for user_id, name in rows:
            names[user_id].append(name)
        return dict(names)

    def custom_data(self, tenant_id: str, user_ids: list[str]) -> dict[str, dict[str, str | None]]:
        if not user_ids:
            return {}
        rows = self.db.execute(
            select(UserCustomData.user_id, UserCustomData.field_name, UserCustomData.field_value)
            .where(UserCustomData.tenant_id == tenant_id, UserCustomData.user_id.in_(user_ids))
            .order_by(UserCustomData.created_at.asc())
        ).all()
        values: dict[str, dict[str, str | None]] = defaultdict(dict)
        for user_id, field_name, field_value in rows:
            # Later submissions overwrite earlier values for the same field.
            values[user_id][field_name] = field_value
        return dict(values)

    def email_taken(self, tenant_id: str, email: str, *, exclude_id: str) -> bool:
        stmt = select(EndUser.id).where(
            EndUser.tenant_id == tenant_id,
            func.lower(EndUser.email) == email.lower(),
            EndUser.id != exclude_id,
        )
        return self.db.execute(stmt).first() is not None

    def replace_custom_data(self, tenant_id: str, user_id: str, values: dict[str, str]) -> None:
        self.db.execute(
            delete(UserCustomData)
            .where(UserCustomData.tenant_id == tenant_id, UserCustomData.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        for field_name, field_value in values.items():
            self.db.add(UserCustomData(tenant_id=tenant_id, user_id=user_id, field_name=field_name, field_value=field_value))
        self.db.flush()

    def active_coupon_count(self, tenant_id: str, user_id: str) -> int:
        stmt = select(func.count(Coupon.id)).where(
            Coupon.tenant_id == tenant_id,
            Coupon.user_id == user_id,
            Coupon.status == "active",
        )
        return int(self.db.execute(stmt).scalar() or 0)

    def delete(self, tenant_id: str, user_id: str) -> int:
        result = self.db.execute(
            delete(EndUser)
            .where(EndUser.id == user_id, EndUser.tenant_id == tenant_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def coupons(self, tenant_id: str, user_id: str) -> list[tuple[Coupon, str | None]]:
        return (
            self.db.query(Coupon, Campaign.name)
            .outerjoin(Campaign, and_(Campaign.id == Coupon.campaign_id, Campaign.tenant_id == Coupon.tenant_id))
            .filter(Coupon.user_id == user_id, Coupon.tenant_id == tenant_id)
            .order_by(Coupon.issued_at.desc(), Coupon.code.asc())
            .all()
        )
