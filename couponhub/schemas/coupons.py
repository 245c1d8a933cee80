from datetime import datetime

from pydantic import BaseModel


class CouponOut(BaseModel):
    id: str
    code: str
    campaign_id: str
    discount_type: str
    discount_value: str
    status: str
    issued_at: datetime
    redeemed_at: datetime | None

    model_config = {"from_attributes": True}


class CouponListItem(CouponOut):
    campaign_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class CouponLookupOut(BaseModel):
    code: str
    status: str
    discount_type: str
    discount_value: str
    campaign_name: str | None
    issued_at: datetime
    redeemed_at: datetime | None


class IssuedCouponOut(BaseModel):
    code: str
    discount_type: str
    discount_value: str
    campaign_name: str
    redemption_url: str
