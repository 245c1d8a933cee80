from datetime import datetime

from pydantic import BaseModel


class CampaignCreateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    discount_type: str | None = None
    discount_value: str | int | float | None = None
    expiry_date: datetime | None = None
    coupon_expiry_date: datetime | None = None


class CampaignUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    discount_type: str | None = None
    discount_value: str | int | float | None = None
    expiry_date: datetime | None = None
    coupon_expiry_date: datetime | None = None


class CampaignOut(BaseModel):
    id: str
    campaign_code: str
    name: str
    description: str | None
    discount_type: str
    discount_value: str
    is_active: bool
    expiry_date: datetime | None
    coupon_expiry_date: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CampaignOption(BaseModel):
    id: str
    name: str
    code: str


class CampaignProductsRequest(BaseModel):
    product_ids: list[str] = []
