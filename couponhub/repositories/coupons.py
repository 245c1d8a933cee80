from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from couponhub.models.campaign import Campaign
from couponhub.models.coupon import Coupon
from couponhub.models.end_user import EndUser, UserCustomData


class CouponRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def code_exists(self, code: str) -> bool:
        return self.db.execute(select(Coupon.id).where(Coupon.code == code)).first() is not None

    def add(self, coupon: Coupon) -> Coupon:
        self.db.add(coupon)
        self.db.flush()
        return coupon

    def get(self, tenant_id: str, coupon_id: str) -> Coupon | None:
        return self.db.query(Coupon).filter(Coupon.id == coupon_id, Coupon.tenant_id == tenant_id).first()

    def get_by_code(self, tenant_id: str, code: str) -> tuple[Coupon, str | None] | None:
        row = (
            self.db.query(Coupon, Campaign.name)
            .outerjoin(Campaign, and_(Campaign.id == Coupon.campaign_id, Campaign.tenant_id == Coupon.tenant_id))
            .filter(Coupon.code == code, Coupon.tenant_id == tenant_id)
            .first()
        )
        if row is None:
            return None
        return row[0], row[1]

    def redeem(self, tenant_id: str, code: str, redeemed_at: datetime) -> int:
        result = self.db.execute(
            update(Coupon)
            .where(Coupon.code == code, Coupon.tenant_id == tenant_id, Coupon.status == "active")
            .values(status="redeemed", redeemed_at=redeemed_at)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def active_ids_for_campaigns(self, tenant_id: str, campaign_ids: list[str]) -> list[str]:
        if not campaign_ids:
            return []
        stmt = select(Coupon.id).where(
            Coupon.tenant_id == tenant_id,
            Coupon.campaign_id.in_(campaign_ids),
            Coupon.status == "active",
        )
        return list(self.db.scalars(stmt).all())

    def expire_many(self, tenant_id: str, coupon_ids: list[str]) -> int:
        if not coupon_ids:
            return 0
        result = self.db.execute(
            update(Coupon)
            .where(Coupon.tenant_id == tenant_id, Coupon.id.in_(coupon_ids), Coupon.status == "active")
            .values(status="expired")
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def delete(self, tenant_id: str, coupon_id: str) -> int:
        result = self.db.execute(
            delete(Coupon)
            .where(Coupon.id == coupon_id, Coupon.tenant_id == tenant_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def _listing_query(self, tenant_id: str):
        return (
            self.db.query(Coupon, Campaign.name, EndUser.first_name, EndUser.last_name, EndUser.email)
            .join(EndUser, and_(EndUser.id == Coupon.user_id, EndUser.tenant_id == Coupon.tenant_id))
            .outerjoin(Campaign, and_(Campaign.id == Coupon.campaign_id, Campaign.tenant_id == Coupon.tenant_id))
            .filter(Coupon.tenant_id == tenant_id)
        )

    def list(
        self,
        tenant_id: str,
        *,
        status: str | None,
        limit: int,
        offset: int,
        descending: bool,
    ) -> tuple[int, list[tuple]]:
        query = self._listing_query(tenant_id)
        count_query = self.db.query(func.count(Coupon.id)).filter(Coupon.tenant_id == tenant_id)
        if status:
            query = query.filter(Coupon.status == status)
            count_query = count_query.filter(Coupon.status == status)
        ordering = Coupon.issued_at.desc() if descending else Coupon.issued_at.asc()
        rows = query.order_by(ordering, Coupon.code.asc()).limit(limit).offset(offset).all()
        return int(count_query.scalar() or 0), rows

    def search(self, tenant_id: str, term: str, *, limit: int) -> list[tuple]:
        pattern = f"%{term.upper()}%"
        return (
            self._listing_query(tenant_id)
            .filter(or_(func.upper(Coupon.code).like(pattern), func.upper(EndUser.last_name).like(pattern)))
            .order_by(Coupon.issued_at.desc())
            .limit(limit)
            .all()
        )

    def find_user_by_email(self, tenant_id: str, email: str) -> EndUser | None:
        return (
            self.db.query(EndUser)
            .filter(EndUser.tenant_id == tenant_id, func.lower(EndUser.email) == email.lower())
            .first()
        )

    def add_user(self, user: EndUser) -> EndUser:
        self.db.add(user)
        self.db.flush()
        return user

    def add_custom_data(self, tenant_id: str, user_id: str, values: dict[str, str]) -> None:
        for field_name, field_value in values.items():
            self.db.add(
                UserCustomData(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    field_name=field_name,
                    field_value=field_value,
                )
            )
        self.db.flush()
