import uuid
from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from couponhub.db.base import Base


class FormLink(Base):
    __tablename__ = "form_links"
    __table_args__ = (
        CheckConstraint(
            "(used_at IS NULL AND coupon_id IS NULL) OR (used_at IS NOT NULL AND coupon_id IS NOT NULL)",
            name="consumption_paired",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign_id: Mapped[str] = mapped_column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    # Plain column: deleting the coupon must leave the link consumed.
    coupon_id: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
