from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from couponhub.models.form_link import FormLink


class FormLinkRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def token_exists(self, token: str) -> bool:
        return self.db.execute(select(FormLink.id).where(FormLink.token == token)).first() is not None

    def add(self, link: FormLink) -> FormLink:
        self.db.add(link)
        return link

    def list_for_campaign(self, tenant_id: str, campaign_id: str) -> list[FormLink]:
        return (
            self.db.query(FormLink)
            .filter(FormLink.tenant_id == tenant_id, FormLink.campaign_id == campaign_id)
            .order_by(FormLink.created_at.desc(), FormLink.token.asc())
            .all()
        )

    def statistics(self, tenant_id: str, campaign_id: str) -> tuple[int, int]:
        total, used = (
            self.db.query(func.count(FormLink.id), func.count(FormLink.used_at))
            .filter(FormLink.tenant_id == tenant_id, FormLink.campaign_id == campaign_id)
            .one()
        )
        return int(total or 0), int(used or 0)

    def get_by_token(self, tenant_id: str, token: str) -> FormLink | None:
        return self.db.query(FormLink).filter(FormLink.token == token, FormLink.tenant_id == tenant_id).first()

    def consume(self, link_id: str, coupon_id: str, used_at: datetime) -> int:
        """Mark the link used only if it still is not; returns affected rows (0 or 1)."""
        result = self.db.execute(
            update(FormLink)
            .where(FormLink.id == link_id, FormLink.used_at.is_(None))
            .values(used_at=used_at, coupon_id=coupon_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
